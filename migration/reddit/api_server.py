#!/usr/bin/env python3
"""
Reddit migration API server

HTTP front end for the migration engine. The browser UI posts account
credentials (cookie, OAuth token or script-app password) plus preferences
or explicit id lists; each request runs one synchronous migration and returns
the structured result.

Run
- python -m migration.reddit.api_server    (MIGRATE_HOST / MIGRATE_PORT)
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import AsyncIterator, List, Literal, Optional, Tuple

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError as BodyValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from . import metrics
from .auth import AccountPayload, resolve_account, verify_cookie, verify_credential
from .client import RedditApiClient
from .config import load_options, server_address, setup_logging
from .errors import AuthError, ListingError, RequestValidationError, VerificationError
from .models import CustomMigrationRequest, DeleteFromSource, MigrationRequest, SelectionSet
from .options import AccountRole, ListingKind, MigrationOptions
from .orchestrator import MigrationOrchestrator
from .paginator import Paginator

logger = logging.getLogger(__name__)


# Request bodies -----------------------------------------------------------------


AuthMethod = Literal["cookie", "oauth", "password"]


class AccountsBody(BaseModel):
    auth_method: AuthMethod = "cookie"
    old_account_cookie: Optional[str] = None
    new_account_cookie: Optional[str] = None
    old_account_token: Optional[str] = None
    new_account_token: Optional[str] = None
    old_account_username: Optional[str] = None
    new_account_username: Optional[str] = None
    # script-app fields for auth_method == "password"
    old_account_client_id: Optional[str] = None
    new_account_client_id: Optional[str] = None
    old_account_client_secret: Optional[str] = None
    new_account_client_secret: Optional[str] = None
    old_account_password: Optional[str] = None
    new_account_password: Optional[str] = None

    def _payload(self, prefix: str) -> AccountPayload:
        return AccountPayload(
            auth_method=self.auth_method,
            cookie=getattr(self, f"{prefix}_account_cookie"),
            access_token=getattr(self, f"{prefix}_account_token"),
            username=getattr(self, f"{prefix}_account_username"),
            client_id=getattr(self, f"{prefix}_account_client_id"),
            client_secret=getattr(self, f"{prefix}_account_client_secret"),
            password=getattr(self, f"{prefix}_account_password"),
        )

    def accounts(self) -> Tuple[AccountPayload, AccountPayload]:
        return self._payload("old"), self._payload("new")


class Preferences(BaseModel):
    migrate_subreddit_bool: bool = False
    migrate_post_bool: bool = False
    delete_subreddit_bool: bool = False
    delete_post_bool: bool = False


class MigrateBody(AccountsBody):
    preferences: Preferences = Field(default_factory=Preferences)


class CustomMigrateBody(AccountsBody):
    selected_subreddits: List[str] = Field(default_factory=list)
    selected_posts: List[str] = Field(default_factory=list)
    delete_old_subreddits: bool = False
    delete_old_posts: bool = False


class VerifyCookieBody(BaseModel):
    cookie: str


class AccountBody(BaseModel):
    auth_method: AuthMethod = "cookie"
    cookie: Optional[str] = None
    access_token: Optional[str] = None
    username: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    password: Optional[str] = None

    def payload(self) -> AccountPayload:
        return AccountPayload.model_validate(self.model_dump())


# Dependencies -----------------------------------------------------------------


@lru_cache(maxsize=1)
def get_options() -> MigrationOptions:
    return load_options()


async def get_client(options: MigrationOptions = Depends(get_options)) -> AsyncIterator[RedditApiClient]:
    client = RedditApiClient(options)
    try:
        yield client
    finally:
        await client.close()


async def _resolve_pair(client: RedditApiClient, body: AccountsBody):
    old, new = body.accounts()
    source = await resolve_account(client, old, AccountRole.SOURCE)
    destination = await resolve_account(client, new, AccountRole.DESTINATION)
    return source, destination


async def _resolve_with_username(client: RedditApiClient, body: AccountBody):
    credential = await resolve_account(client, body.payload(), AccountRole.SOURCE)
    if not credential.username:
        credential = credential.with_username(await verify_credential(client, credential))
    return credential


# App ----------------------------------------------------------------------------

app = FastAPI(title="Reddit Migrate")


@app.exception_handler(RequestValidationError)
async def validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    metrics.inc_stage_error("validation")
    return JSONResponse(status_code=400, content={"success": False, "message": f"Bad Request: {exc}"})


@app.exception_handler(BodyValidationError)
async def body_validation_handler(_: Request, exc: BodyValidationError) -> JSONResponse:
    metrics.inc_stage_error("validation")
    return JSONResponse(status_code=400, content={"success": False, "message": f"Bad Request: {exc.errors()}"})


@app.exception_handler(AuthError)
async def auth_handler(_: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "message": str(exc)})


@app.exception_handler(VerificationError)
async def verification_handler(_: Request, exc: VerificationError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"success": False, "message": str(exc)})


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "service": "reddit-migrate"}


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/api/verify-cookie")
async def verify_cookie_endpoint(body: VerifyCookieBody, client: RedditApiClient = Depends(get_client)) -> dict:
    result = await verify_cookie(client, body.cookie)
    return {"success": result.success, "message": result.message, "data": {"username": result.username or ""}}


@app.post("/api/migrate")
async def migrate_endpoint(body: MigrateBody, client: RedditApiClient = Depends(get_client)) -> JSONResponse:
    source, destination = await _resolve_pair(client, body)
    prefs = body.preferences
    request = MigrationRequest(
        source=source,
        destination=destination,
        subreddit_selection=SelectionSet.all() if prefs.migrate_subreddit_bool else SelectionSet.none(),
        post_selection=SelectionSet.all() if prefs.migrate_post_bool else SelectionSet.none(),
        delete_from_source=DeleteFromSource(subreddits=prefs.delete_subreddit_bool, posts=prefs.delete_post_bool),
    )
    result = await MigrationOrchestrator(client).migrate(request)
    return _result_response(result)


@app.post("/api/migrate-custom")
async def migrate_custom_endpoint(body: CustomMigrateBody, client: RedditApiClient = Depends(get_client)) -> JSONResponse:
    source, destination = await _resolve_pair(client, body)
    request = CustomMigrationRequest(
        source=source,
        destination=destination,
        selected_subreddits=body.selected_subreddits,
        selected_posts=body.selected_posts,
        delete_old_subreddits=body.delete_old_subreddits,
        delete_old_posts=body.delete_old_posts,
    )
    result = await MigrationOrchestrator(client).migrate_custom(request)
    return _result_response(result)


def _result_response(result) -> JSONResponse:
    if "auth" in result.errors:
        return JSONResponse(status_code=401, content={"success": False, "message": result.errors["auth"]})
    if "verification" in result.errors:
        return JSONResponse(status_code=502, content={"success": False, "message": result.errors["verification"]})
    return JSONResponse(status_code=200, content=result.to_response())


async def _listing(body: AccountBody, client: RedditApiClient, kind: ListingKind, key: str) -> JSONResponse:
    credential = await _resolve_with_username(client, body)
    paginator = Paginator(client, page_size=client.options.page_size, max_pages=client.options.max_pages)
    try:
        records = await paginator.fetch_all_details(credential, kind)
    except ListingError as e:
        return JSONResponse(status_code=502, content={"success": False, "message": str(e)})
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": f"Fetched {len(records)} {kind.value}",
            key: [r.model_dump() for r in records],
            "count": len(records),
        },
    )


@app.post("/api/subreddits")
async def subreddits_endpoint(body: AccountBody, client: RedditApiClient = Depends(get_client)) -> JSONResponse:
    return await _listing(body, client, ListingKind.SUBREDDITS, "subreddits")


@app.post("/api/saved-posts")
async def saved_posts_endpoint(body: AccountBody, client: RedditApiClient = Depends(get_client)) -> JSONResponse:
    return await _listing(body, client, ListingKind.SAVED, "posts")


@app.post("/api/account-counts")
async def account_counts_endpoint(body: AccountBody, client: RedditApiClient = Depends(get_client)) -> dict:
    credential = await _resolve_with_username(client, body)
    paginator = Paginator(client, page_size=client.options.page_size, max_pages=client.options.max_pages)
    counts = {}
    for kind in (ListingKind.SUBREDDITS, ListingKind.SAVED):
        try:
            counts[kind] = await paginator.count(credential, kind)
        except ListingError as e:
            logger.error("[api] counting %s failed: %s", kind.value, e)
            counts[kind] = -1
    return {
        "success": True,
        "message": "Account counts retrieved successfully",
        "username": credential.username,
        "subreddit_count": counts[ListingKind.SUBREDDITS],
        "saved_posts_count": counts[ListingKind.SAVED],
    }


def main() -> None:
    import uvicorn

    setup_logging()
    host, port = server_address()
    logger.info("[api] listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
