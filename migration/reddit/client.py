from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from . import metrics
from .errors import NetworkError, classify_status
from .models import Credential, ItemPage, SavedPostInfo, SubredditInfo
from .options import ListingKind, MigrationOptions, PostAction, SubredditAction

logger = logging.getLogger(__name__)


def split_subreddit_identifiers(identifiers: Sequence[str]) -> Dict[str, str]:
    """
    Build the sr / sr_name form fields for /api/subscribe.
    Fullnames (t5_...) go in `sr`, plain display names in `sr_name`.
    """
    fullnames = [i for i in identifiers if i.startswith("t5_")]
    names = [i for i in identifiers if not i.startswith("t5_")]
    form: Dict[str, str] = {}
    if fullnames:
        form["sr"] = ",".join(fullnames)
    if names:
        form["sr_name"] = ",".join(names)
    return form


def _json_object(resp: httpx.Response, what: str) -> Dict[str, Any]:
    """Decode a JSON object body; ValueError for anything else."""
    try:
        payload = resp.json()
    except ValueError as e:
        raise ValueError(f"{what} response is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError(f"{what} response is not a JSON object")
    return payload


class RedditApiClient:
    """
    Thin async wrapper over the Reddit REST endpoints the migration needs.

    Every call takes the Credential to act as, so one client serves both
    accounts. Non-200 responses raise HttpError/RateLimited and transport
    failures (timeouts included) raise NetworkError; callers decide whether
    that is fatal.
    """

    def __init__(self, options: Optional[MigrationOptions] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.options = options or MigrationOptions()
        self._http = httpx.AsyncClient(
            timeout=self.options.request_timeout,
            headers={"User-Agent": self.options.user_agent},
            transport=transport,
        )

    async def __aenter__(self) -> "RedditApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # Low-level ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        endpoint: str,
        credential: Optional[Credential] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        req_headers: Dict[str, str] = dict(headers or {})
        if credential is not None:
            req_headers["Authorization"] = f"Bearer {credential.bearer}"
        metrics.inc_request(endpoint)
        try:
            resp = await self._http.request(method, url, params=params, data=data, headers=req_headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"timeout calling {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"network error calling {endpoint}: {e}") from e
        if resp.status_code != 200:
            logger.debug("%s %s -> %d: %s", method, endpoint, resp.status_code, resp.text[:200])
            raise classify_status(resp.status_code, resp.text)
        return resp

    def _listing_url(self, kind: ListingKind, username: Optional[str]) -> str:
        if kind == ListingKind.SUBREDDITS:
            return f"{self.options.oauth_url}/subreddits/mine/subscriber"
        if not username:
            raise ValueError("username is required to list saved items")
        return f"{self.options.oauth_url}/user/{username}/saved"

    # Endpoints ------------------------------------------------------------------

    async def _fetch_listing(
        self,
        credential: Credential,
        kind: ListingKind,
        after: Optional[str],
        limit: int,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Raw `data` dicts of one listing page plus the next cursor."""
        params: Dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after
        resp = await self._request(
            "GET",
            self._listing_url(kind, credential.username),
            endpoint=f"listing:{kind.value}",
            credential=credential,
            params=params,
        )
        data = _json_object(resp, f"{kind.value} listing").get("data")
        if not isinstance(data, dict):
            raise ValueError(f"{kind.value} listing has no data object")
        children = data.get("children") or []
        if not isinstance(children, list):
            raise ValueError(f"{kind.value} listing children is not a list")
        records = []
        for child in children:
            record = child.get("data") if isinstance(child, dict) else None
            records.append(record if isinstance(record, dict) else {})
        cursor = data.get("after")
        return records, cursor if isinstance(cursor, str) and cursor else None

    async def fetch_listing_page(
        self,
        credential: Credential,
        kind: ListingKind,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> ItemPage:
        records, cursor = await self._fetch_listing(credential, kind, after, limit)
        items = [r["name"] for r in records if isinstance(r.get("name"), str) and r["name"]]
        return ItemPage(items=items, after=cursor, size=len(records))

    async def fetch_listing_details(
        self,
        credential: Credential,
        kind: ListingKind,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> ItemPage:
        """Same page as fetch_listing_page, parsed into SubredditInfo / SavedPostInfo records."""
        records, cursor = await self._fetch_listing(credential, kind, after, limit)
        parse = SubredditInfo.from_listing if kind == ListingKind.SUBREDDITS else SavedPostInfo.from_listing
        items = [parse(r) for r in records if isinstance(r.get("name"), str) and r["name"]]
        return ItemPage(items=items, after=cursor, size=len(records))

    async def subscribe(self, credential: Credential, identifiers: Sequence[str], action: SubredditAction) -> None:
        form = split_subreddit_identifiers(identifiers)
        form["action"] = action.value
        form["api_type"] = "json"
        await self._request(
            "POST",
            f"{self.options.oauth_url}/api/subscribe",
            endpoint=f"subscribe:{action.value}",
            credential=credential,
            data=form,
        )

    async def set_saved(self, credential: Credential, fullname: str, action: PostAction) -> None:
        await self._request(
            "POST",
            f"{self.options.oauth_url}/api/{action.value}",
            endpoint=action.value,
            credential=credential,
            data={"id": fullname},
        )

    async def me(self, credential: Credential) -> str:
        resp = await self._request(
            "GET",
            f"{self.options.oauth_url}/api/v1/me",
            endpoint="me",
            credential=credential,
        )
        name = _json_object(resp, "/api/v1/me").get("name")
        if not name:
            raise ValueError("Reddit accepted the token but returned no username")
        return name

    async def me_from_cookie(self, cookie: str) -> str:
        resp = await self._request(
            "GET",
            f"{self.options.base_url}/api/me.json",
            endpoint="me_cookie",
            headers={"Cookie": cookie},
        )
        data = _json_object(resp, "/api/me.json").get("data")
        name = data.get("name") if isinstance(data, dict) else None
        if not name:
            raise ValueError("Cookie seems valid, but username could not be retrieved")
        return name
