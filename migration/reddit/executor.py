from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from . import metrics
from .chunker import chunk
from .client import RedditApiClient
from .errors import ItemOperationError
from .models import Credential, OutcomeReport
from .options import MigrationOptions, PostAction, SubredditAction
from .rate_gate import RateGate

logger = logging.getLogger(__name__)

# (items covered by the request, error or None)
Outcome = Tuple[Sequence[str], Optional[BaseException]]


class BatchExecutor:
    """
    Issues write requests in bounded waves and folds the outcomes into an
    OutcomeReport.

    A wave is at most `concurrency` requests gathered together; the RateGate
    spaces consecutive waves. Every request of a wave is awaited before its
    outcomes are merged, and per-request failures are recorded, never raised.
    """

    def __init__(
        self,
        client: RedditApiClient,
        gate: Optional[RateGate] = None,
        options: Optional[MigrationOptions] = None,
    ):
        self.client = client
        self.options = options or client.options
        self.gate = gate or RateGate(self.options.wave_delay)

    async def _run_waves(
        self,
        units: Sequence[Sequence[str]],
        send: Callable[[Sequence[str]], Awaitable[None]],
        concurrency: int,
        operation: str,
    ) -> OutcomeReport:
        report = OutcomeReport()
        waves = chunk(list(units), concurrency) if units else []

        async def _attempt(unit: Sequence[str]) -> Outcome:
            try:
                await send(unit)
                return unit, None
            except ItemOperationError as e:
                return unit, e

        for wave_no, wave in enumerate(waves, start=1):
            await self.gate.await_slot()
            with metrics.measure_wave(operation):
                outcomes: List[Outcome] = await asyncio.gather(*[_attempt(u) for u in wave])
            for unit, err in outcomes:
                if err is None:
                    report.record_success(unit)
                    metrics.inc_items(operation, "success", len(unit))
                else:
                    logger.warning("[executor] %s failed for %d item(s) %s: %s", operation, len(unit), list(unit)[:5], err)
                    report.record_failure(unit)
                    metrics.inc_items(operation, type(err).__name__, len(unit))
            logger.debug(
                "[executor] %s wave %d/%d done; success=%d failed=%d",
                operation, wave_no, len(waves), report.success_count, report.failed_count,
            )
        return report

    async def execute_subscription_chunks(
        self,
        credential: Credential,
        chunks: Sequence[Sequence[str]],
        action: SubredditAction,
    ) -> OutcomeReport:
        """One /api/subscribe request per chunk; a chunk succeeds or fails as a whole."""
        total = sum(len(c) for c in chunks)
        logger.info("[executor] %s %d subreddits in %d chunks as %s", action.value, total, len(chunks), credential.masked)

        async def _send(unit: Sequence[str]) -> None:
            await self.client.subscribe(credential, unit, action)

        report = await self._run_waves(
            [c for c in chunks if c],
            _send,
            self.options.subscribe_concurrency,
            f"subscribe:{action.value}",
        )
        logger.info("[executor] %s finished: %d ok, %d failed", action.value, report.success_count, report.failed_count)
        return report

    async def execute_item_operations(
        self,
        credential: Credential,
        items: Sequence[str],
        action: PostAction,
    ) -> OutcomeReport:
        """One /api/save or /api/unsave request per item."""
        logger.info("[executor] %s %d items as %s", action.value, len(items), credential.masked)

        async def _send(unit: Sequence[str]) -> None:
            await self.client.set_saved(credential, unit[0], action)

        report = await self._run_waves(
            [[i] for i in items],
            _send,
            self.options.post_concurrency,
            action.value,
        )
        logger.info("[executor] %s finished: %d ok, %d failed", action.value, report.success_count, report.failed_count)
        return report
