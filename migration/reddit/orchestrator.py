"""
Migration orchestrator

Purpose
- Runs one migration request end to end, strictly sequentially:
  0. verify both accounts (/api/v1/me) and learn their usernames
  1. resolve selections (all -> paginate the source account, custom -> as given)
  2. subreddits: subscribe on destination, then optionally unsubscribe on source
  3. saved posts: save on destination, then optionally unsave on source
  4. assemble the MigrationResult

Failure policy
- AuthError (401/403): fatal for the whole run; the result carries no reports.
- VerificationError (Reddit unreachable or failing while checking an account):
  also fatal for the whole run, recorded under "verification".
- ListingError: fatal only for its content kind; the other kind still runs.
- Per-item write failures land in the OutcomeReports.
- Nothing is rolled back: writes completed before a later failure stay.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from . import metrics
from .auth import verify_credential
from .chunker import chunk
from .client import RedditApiClient
from .errors import AuthError, ListingError, RequestValidationError, VerificationError
from .executor import BatchExecutor
from .models import (
    AccountAuthState,
    CustomMigrationRequest,
    MigrationRequest,
    MigrationResult,
    OutcomeReport,
    SelectionMode,
)
from .options import AccountRole
from .paginator import Paginator
from .planner import KindPlan, SubredditStage, build_plan
from .rate_gate import RateGate

logger = logging.getLogger(__name__)


# Helpers ----------------------------------------------------------------------

def _validation_message(err: ValidationError) -> str:
    parts = []
    for e in err.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()))
        parts.append(f"{loc}: {e.get('msg')}" if loc else str(e.get("msg")))
    return "; ".join(parts)


def _invalid(err: ValidationError) -> RequestValidationError:
    metrics.inc_stage_error("validation")
    return RequestValidationError(_validation_message(err))


def parse_request(payload: Mapping[str, Any]) -> MigrationRequest:
    """Validate a raw payload into a MigrationRequest or raise RequestValidationError."""
    try:
        return MigrationRequest.model_validate(payload)
    except ValidationError as e:
        raise _invalid(e) from e


def parse_custom_request(payload: Mapping[str, Any]) -> CustomMigrationRequest:
    try:
        return CustomMigrationRequest.model_validate(payload)
    except ValidationError as e:
        raise _invalid(e) from e


# Orchestrator -----------------------------------------------------------------

class MigrationOrchestrator:
    def __init__(self, client: RedditApiClient, gate: RateGate | None = None):
        self.client = client
        self.options = client.options
        self.paginator = Paginator(client, page_size=self.options.page_size, max_pages=self.options.max_pages)
        self.executor = BatchExecutor(client, gate=gate, options=self.options)

    async def verify_accounts(self, request: MigrationRequest) -> Dict[AccountRole, AccountAuthState]:
        states = {
            AccountRole.SOURCE: AccountAuthState(role=AccountRole.SOURCE, credential=request.source),
            AccountRole.DESTINATION: AccountAuthState(role=AccountRole.DESTINATION, credential=request.destination),
        }
        for role in (AccountRole.DESTINATION, AccountRole.SOURCE):
            state = states[role]
            username = await verify_credential(self.client, state.credential)
            state.mark_verified(username)
            logger.info("[orchestrator] verified %s account u/%s (%s)", role.value, username, state.credential.masked)
        return states

    async def _resolve(self, kp: KindPlan, source: AccountAuthState) -> List[str]:
        if kp.selection.mode == SelectionMode.CUSTOM:
            logger.info("[orchestrator] using %d caller-selected %s", len(kp.selection.items), kp.kind.value)
            return list(kp.selection.items)
        return await self.paginator.fetch_all_identifiers(source.credential, kp.kind)

    async def _run_kind(self, kp: KindPlan, states: Dict[AccountRole, AccountAuthState], result: MigrationResult) -> None:
        items = await self._resolve(kp, states[AccountRole.SOURCE])
        for stage in kp.stages:
            credential = states[stage.role].credential
            report: OutcomeReport
            if isinstance(stage, SubredditStage):
                chunks = chunk(items, self.options.subreddit_chunk_size)
                report = await self.executor.execute_subscription_chunks(credential, chunks, stage.action)
            else:
                report = await self.executor.execute_item_operations(credential, items, stage.action)
            setattr(result, stage.report, report)

    async def migrate(self, request: MigrationRequest) -> MigrationResult:
        result = MigrationResult()
        plan = build_plan(request)
        active = [kp for kp in plan.kinds if kp.stages]
        if not active:
            result.message = "Nothing to migrate: no subreddits or posts were selected."
            result.success = True
            return result

        logger.info("[orchestrator] starting migration for %s", ", ".join(kp.kind.value for kp in active))
        try:
            states = await self.verify_accounts(request)
        except AuthError as e:
            logger.error("[orchestrator] %s", e)
            metrics.inc_stage_error("auth")
            result.errors["auth"] = str(e)
            return result.finalize()
        except VerificationError as e:
            logger.error("[orchestrator] %s", e)
            metrics.inc_stage_error("verification")
            result.errors["verification"] = str(e)
            return result.finalize()

        for kp in active:
            try:
                await self._run_kind(kp, states, result)
            except ListingError as e:
                logger.error("[orchestrator] %s migration aborted: %s", kp.kind.value, e)
                metrics.inc_stage_error(kp.kind.value)
                result.errors[kp.kind.value] = str(e)
            except AuthError as e:
                logger.error("[orchestrator] %s", e)
                metrics.inc_stage_error("auth")
                result.errors["auth"] = str(e)
                break

        result.finalize()
        logger.info("[orchestrator] %s", result.message)
        return result

    async def migrate_custom(self, request: CustomMigrationRequest) -> MigrationResult:
        logger.info(
            "[orchestrator] custom migration: %d subreddits, %d posts",
            len(request.selected_subreddits), len(request.selected_posts),
        )
        return await self.migrate(request.to_migration_request())
