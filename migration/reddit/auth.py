from __future__ import annotations

import logging
from typing import Literal, Optional

import asyncprawcore
from asyncprawcore.exceptions import AsyncPrawcoreException, OAuthException, ResponseException
from pydantic import BaseModel, ValidationError

from .client import RedditApiClient
from .errors import AuthError, HttpError, ItemOperationError, RequestValidationError, VerificationError
from .models import Credential, safe_suffix
from .options import AccountRole, MigrationOptions

logger = logging.getLogger(__name__)

COOKIE_TOKEN_NAME = "token_v2"


class AccountCredential(BaseModel):
    """Script-app credentials for the password grant."""

    client_id: str
    client_secret: str
    username: str
    password: str


class AccountPayload(BaseModel):
    """How an account is presented to the API front end."""

    auth_method: Literal["cookie", "oauth", "password"] = "cookie"
    cookie: Optional[str] = None
    access_token: Optional[str] = None
    username: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    password: Optional[str] = None


class TokenVerification(BaseModel):
    success: bool
    message: str
    username: Optional[str] = None


def _credential(role: AccountRole, token: str, username: Optional[str] = None) -> Credential:
    try:
        return Credential(role=role, token=token, username=username)
    except ValidationError as e:
        raise RequestValidationError(f"{role.value}: invalid credential") from e


def parse_token_from_cookie(cookie: str) -> Optional[str]:
    """Extract the token_v2 value from a raw Cookie header string."""
    for part in (cookie or "").split(";"):
        part = part.strip()
        if part.startswith(f"{COOKIE_TOKEN_NAME}="):
            value = part.split("=", 1)[1].strip()
            return value or None
    return None


def _rejected(status: Optional[int]) -> bool:
    return status in (401, 403)


async def lookup_cookie_username(client: RedditApiClient, cookie: str, role: Optional[str] = None) -> str:
    """
    Username behind a browser cookie. AuthError when Reddit does not accept the
    cookie, VerificationError when Reddit could not be asked.
    """
    try:
        return await client.me_from_cookie(cookie)
    except HttpError as e:
        logger.warning("[auth] cookie ...%s check returned status %s", safe_suffix(cookie), e.status)
        if _rejected(e.status):
            raise AuthError(f"Invalid Token/Cookie (status {e.status})", role=role, status=e.status) from e
        raise VerificationError(f"Reddit could not verify the cookie (status {e.status})", role=role, status=e.status) from e
    except ItemOperationError as e:
        logger.error("[auth] could not reach Reddit to verify cookie: %s", e)
        raise VerificationError(f"Error contacting Reddit to verify cookie: {e}", role=role) from e
    except ValueError as e:
        # /api/me.json answers 200 with an empty body for a dead session
        raise AuthError(str(e), role=role) from e


async def verify_cookie(client: RedditApiClient, cookie: str) -> TokenVerification:
    if not cookie or not cookie.strip():
        return TokenVerification(success=False, message="Cookie is empty")
    try:
        username = await lookup_cookie_username(client, cookie)
    except (AuthError, VerificationError) as e:
        return TokenVerification(success=False, message=str(e))
    return TokenVerification(success=True, message="Valid Token/Cookie", username=username)


async def verify_credential(client: RedditApiClient, credential: Credential) -> str:
    """
    Resolve the username behind a bearer token. AuthError only when Reddit
    refuses the token (401/403); any other failure is a VerificationError.
    """
    role = credential.role.value
    try:
        return await client.me(credential)
    except HttpError as e:
        if _rejected(e.status):
            raise AuthError(
                f"Reddit rejected the {role} account credential; please re-authenticate.",
                role=role,
                status=e.status,
            ) from e
        raise VerificationError(f"Could not verify the {role} account: {e}", role=role, status=e.status) from e
    except (ItemOperationError, ValueError) as e:
        raise VerificationError(f"Could not verify the {role} account: {e}", role=role) from e


async def password_grant_token(account: AccountCredential, options: Optional[MigrationOptions] = None) -> str:
    """Obtain a bearer token for a script app via the OAuth password grant."""
    options = options or MigrationOptions()
    requestor = asyncprawcore.Requestor(options.user_agent)
    try:
        authenticator = asyncprawcore.TrustedAuthenticator(requestor, account.client_id, account.client_secret)
        authorizer = asyncprawcore.ScriptAuthorizer(authenticator, account.username, account.password)
        await authorizer.refresh()
        if not authorizer.is_valid():
            raise AuthError(f"password grant for u/{account.username} returned no usable token")
        return authorizer.access_token
    except OAuthException as e:
        raise AuthError(f"password grant for u/{account.username} refused: {e}") from e
    except ResponseException as e:
        status = getattr(e.response, "status", None)
        if status in (400, 401, 403):
            raise AuthError(f"password grant for u/{account.username} refused: {e}", status=status) from e
        raise VerificationError(f"password grant for u/{account.username} failed: {e}", status=status) from e
    except AsyncPrawcoreException as e:
        raise VerificationError(f"password grant for u/{account.username} failed: {e}") from e
    finally:
        await requestor.close()


async def resolve_account(client: RedditApiClient, payload: AccountPayload, role: AccountRole) -> Credential:
    """
    Turn an account payload into a Credential. Raises RequestValidationError
    when required fields are missing, AuthError when Reddit rejects the
    account and VerificationError when Reddit could not be reached.
    """
    if payload.auth_method == "oauth":
        if not payload.access_token:
            raise RequestValidationError(f"{role.value}: access_token is required for oauth")
        return _credential(role, payload.access_token, payload.username or None)

    if payload.auth_method == "password":
        missing = [f for f in ("client_id", "client_secret", "username", "password") if not getattr(payload, f)]
        if missing:
            raise RequestValidationError(f"{role.value}: missing {', '.join(missing)} for password auth")
        account = AccountCredential(
            client_id=payload.client_id,
            client_secret=payload.client_secret,
            username=payload.username,
            password=payload.password,
        )
        token = await password_grant_token(account, client.options)
        return _credential(role, token, username=account.username)

    if not payload.cookie:
        raise RequestValidationError(f"{role.value}: cookie is required")
    token = parse_token_from_cookie(payload.cookie)
    if not token:
        raise RequestValidationError(f"{role.value}: cookie has no {COOKIE_TOKEN_NAME} value")
    try:
        username = await lookup_cookie_username(client, payload.cookie, role=role.value)
    except AuthError as e:
        raise AuthError(f"{role.value}: {e}", role=role.value, status=e.status) from e
    return _credential(role, token, username)
