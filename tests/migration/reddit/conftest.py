from typing import Dict, List, Optional, Set
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from migration.reddit.client import RedditApiClient
from migration.reddit.models import Credential
from migration.reddit.options import AccountRole, MigrationOptions


class FakeReddit:
    """
    In-memory stand-in for the Reddit endpoints, served through httpx.MockTransport.

    tokens:        bearer token -> username (unknown tokens get 401)
    cookies:       token_v2 value -> username for /api/me.json
    subscriptions: username -> subreddit fullnames
    saved:         username -> post/comment fullnames
    details:       fullname -> extra listing fields (title, subreddit, ...)
    unnamed:       fullnames served as listing children without a name
    me_status:     forced status for /api/v1/me (e.g. 503)
    """

    def __init__(self):
        self.tokens: Dict[str, str] = {}
        self.cookies: Dict[str, str] = {}
        self.subscriptions: Dict[str, List[str]] = {}
        self.saved: Dict[str, List[str]] = {}
        self.fail_save_ids: Set[str] = set()
        self.listing_status: Dict[str, int] = {}
        self.details: Dict[str, dict] = {}
        self.unnamed: Set[str] = set()
        self.me_status: Optional[int] = None
        self.calls: List[dict] = []

    # helpers for assertions
    def calls_to(self, path: str, method: Optional[str] = None) -> List[dict]:
        return [c for c in self.calls if c["path"] == path and (method is None or c["method"] == method)]

    def write_calls(self) -> List[dict]:
        return [c for c in self.calls if c["method"] == "POST"]

    def _user(self, request: httpx.Request) -> Optional[str]:
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            return None
        return self.tokens.get(auth[len("Bearer "):])

    def _child(self, name: str) -> dict:
        if name in self.unnamed:
            return {"title": "removed"}
        return {"name": name, **self.details.get(name, {})}

    def _listing(self, items: List[str], params) -> httpx.Response:
        limit = int(params.get("limit", 25))
        after = params.get("after")
        start = items.index(after) + 1 if after in items else 0
        page = items[start:start + limit]
        more = start + limit < len(items)
        return httpx.Response(
            200,
            json={
                "kind": "Listing",
                "data": {
                    "after": page[-1] if (page and more) else None,
                    "children": [{"kind": name[:2], "data": self._child(name)} for name in page],
                },
            },
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()} if request.method == "POST" else {}
        self.calls.append(
            {
                "method": request.method,
                "path": path,
                "params": dict(request.url.params),
                "form": form,
                "auth": request.headers.get("Authorization"),
            }
        )

        if path == "/api/me.json":
            cookie = request.headers.get("Cookie", "")
            for part in cookie.split(";"):
                part = part.strip()
                if part.startswith("token_v2="):
                    name = self.cookies.get(part.split("=", 1)[1])
                    if name:
                        return httpx.Response(200, json={"kind": "t2", "data": {"name": name}})
            return httpx.Response(200, json={})

        user = self._user(request)
        if user is None:
            return httpx.Response(401, json={"message": "Unauthorized", "error": 401})

        if path == "/api/v1/me":
            if self.me_status:
                return httpx.Response(self.me_status, text="upstream unavailable")
            return httpx.Response(200, json={"name": user})

        if path == "/subreddits/mine/subscriber":
            if "subreddits" in self.listing_status:
                return httpx.Response(self.listing_status["subreddits"], text="listing down")
            return self._listing(self.subscriptions.get(user, []), request.url.params)

        if path == f"/user/{user}/saved":
            if "saved" in self.listing_status:
                return httpx.Response(self.listing_status["saved"], text="listing down")
            return self._listing(self.saved.get(user, []), request.url.params)

        if path == "/api/subscribe":
            ids = [i for key in ("sr", "sr_name") for i in form.get(key, "").split(",") if i]
            subs = self.subscriptions.setdefault(user, [])
            if form.get("action") == "sub":
                subs.extend(i for i in ids if i not in subs)
            else:
                self.subscriptions[user] = [s for s in subs if s not in ids]
            return httpx.Response(200, json={})

        if path in ("/api/save", "/api/unsave"):
            fullname = form.get("id", "")
            if fullname in self.fail_save_ids:
                return httpx.Response(500, text="internal error")
            saved = self.saved.setdefault(user, [])
            if path == "/api/save" and fullname not in saved:
                saved.append(fullname)
            elif path == "/api/unsave":
                self.saved[user] = [s for s in saved if s != fullname]
            return httpx.Response(200, json={})

        return httpx.Response(404, text=f"no route for {path}")


@pytest.fixture
def fake_reddit():
    fake = FakeReddit()
    fake.tokens = {"src-token": "old_user", "dst-token": "new_user"}
    return fake


@pytest.fixture
def options():
    return MigrationOptions(wave_delay=0.0)


@pytest_asyncio.fixture
async def client(fake_reddit, options):
    c = RedditApiClient(options, transport=httpx.MockTransport(fake_reddit.handler))
    yield c
    await c.close()


@pytest.fixture
def source():
    return Credential(role=AccountRole.SOURCE, token="src-token")


@pytest.fixture
def destination():
    return Credential(role=AccountRole.DESTINATION, token="dst-token")
