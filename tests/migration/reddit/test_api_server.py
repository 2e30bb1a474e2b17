import httpx
import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from migration.reddit import auth
from migration.reddit.api_server import app, get_client
from migration.reddit.client import RedditApiClient
from migration.reddit.options import MigrationOptions


@pytest.fixture
def api(fake_reddit):
    async def _client():
        c = RedditApiClient(MigrationOptions(wave_delay=0.0), transport=httpx.MockTransport(fake_reddit.handler))
        try:
            yield c
        finally:
            await c.close()

    app.dependency_overrides[get_client] = _client
    yield TestClient(app)
    app.dependency_overrides.clear()


def _oauth(**extra):
    body = {"auth_method": "oauth", "old_account_token": "src-token", "new_account_token": "dst-token"}
    body.update(extra)
    return body


def test_health_and_metrics(api):
    assert api.get("/health").json()["status"] == "ok"
    resp = api.get("/metrics")
    assert resp.status_code == 200
    assert "reddit_migrate_requests_total" in resp.text


def test_verify_cookie_endpoint(api, fake_reddit):
    fake_reddit.cookies["cookie-token"] = "old_user"

    ok = api.post("/api/verify-cookie", json={"cookie": "token_v2=cookie-token"}).json()
    assert ok == {"success": True, "message": "Valid Token/Cookie", "data": {"username": "old_user"}}

    bad = api.post("/api/verify-cookie", json={"cookie": "token_v2=unknown"}).json()
    assert bad["success"] is False

    resp = api.post("/api/verify-cookie", json={})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_migrate_with_preferences(api, fake_reddit):
    fake_reddit.subscriptions["old_user"] = ["t5_a", "t5_b", "t5_c"]
    body = _oauth(preferences={"migrate_subreddit_bool": True, "delete_subreddit_bool": True})

    resp = api.post("/api/migrate", json=body)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["subscribe_subreddit"]["success_count"] == 3
    assert data["unsubscribe_subreddit"]["success_count"] == 3
    assert "save_post" not in data
    assert fake_reddit.subscriptions["new_user"] == ["t5_a", "t5_b", "t5_c"]


def test_migrate_with_rejected_token_is_401(api, fake_reddit):
    resp = api.post("/api/migrate", json=_oauth(new_account_token="expired", preferences={"migrate_post_bool": True}))
    assert resp.status_code == 401
    assert resp.json()["success"] is False
    assert fake_reddit.write_calls() == []


def test_migrate_missing_cookie_is_400(api):
    resp = api.post("/api/migrate", json={"new_account_cookie": "token_v2=x", "preferences": {"migrate_post_bool": True}})
    assert resp.status_code == 400
    assert "cookie is required" in resp.json()["message"]


def test_migrate_with_expired_cookie_is_401(api):
    resp = api.post(
        "/api/migrate",
        json={"old_account_cookie": "token_v2=x", "new_account_cookie": "token_v2=y", "preferences": {}},
    )
    assert resp.status_code == 401


def test_migrate_custom(api, fake_reddit):
    fake_reddit.saved["old_user"] = ["t3_a", "t3_b"]
    body = _oauth(selected_posts=["t3_a"], delete_old_posts=True)

    resp = api.post("/api/migrate-custom", json=body)

    assert resp.status_code == 200
    data = resp.json()
    assert data["save_post"]["success_count"] == 1
    assert data["unsave_post"]["success_count"] == 1
    assert fake_reddit.saved["old_user"] == ["t3_b"]
    assert fake_reddit.saved["new_user"] == ["t3_a"]


def test_listing_endpoints(api, fake_reddit):
    fake_reddit.subscriptions["old_user"] = ["t5_a", "t5_b"]
    fake_reddit.saved["old_user"] = ["t3_a"]
    account = {"auth_method": "oauth", "access_token": "src-token"}

    fake_reddit.details = {
        "t5_a": {"display_name": "python", "subscribers": 10},
        "t3_a": {"title": "A post", "permalink": "/r/python/comments/a/a_post/"},
    }

    subs = api.post("/api/subreddits", json=account).json()
    assert subs["success"] is True
    assert subs["count"] == 2
    assert [s["name"] for s in subs["subreddits"]] == ["t5_a", "t5_b"]
    assert subs["subreddits"][0]["display_name"] == "python"
    assert subs["subreddits"][0]["subscribers"] == 10

    saved = api.post("/api/saved-posts", json=account).json()
    assert saved["count"] == 1
    assert saved["posts"][0]["full_name"] == "t3_a"
    assert saved["posts"][0]["title"] == "A post"
    assert saved["posts"][0]["permalink"] == "https://reddit.com/r/python/comments/a/a_post/"

    fake_reddit.listing_status["saved"] = 500
    resp = api.post("/api/saved-posts", json=account)
    assert resp.status_code == 502


def test_account_counts(api, fake_reddit):
    fake_reddit.subscriptions["old_user"] = ["t5_a", "t5_b"]
    fake_reddit.listing_status["saved"] = 500

    data = api.post("/api/account-counts", json={"auth_method": "oauth", "access_token": "src-token"}).json()

    assert data["success"] is True
    assert data["username"] == "old_user"
    assert data["subreddit_count"] == 2
    assert data["saved_posts_count"] == -1


def test_listing_with_rejected_token_is_401(api):
    resp = api.post("/api/subreddits", json={"auth_method": "oauth", "access_token": "expired"})
    assert resp.status_code == 401


def test_reddit_outage_during_verification_is_502(api, fake_reddit):
    fake_reddit.me_status = 503
    fake_reddit.saved["old_user"] = ["t3_a"]

    resp = api.post("/api/migrate", json=_oauth(preferences={"migrate_post_bool": True}))

    assert resp.status_code == 502
    assert resp.json()["success"] is False
    assert "re-authenticate" not in resp.json()["message"]
    assert fake_reddit.write_calls() == []

    listing = api.post("/api/subreddits", json={"auth_method": "oauth", "access_token": "src-token"})
    assert listing.status_code == 502


def test_migrate_with_password_accounts(api, fake_reddit, monkeypatch):
    grants = []

    async def fake_grant(account, options=None):
        grants.append(account)
        return {"old_user": "src-token", "new_user": "dst-token"}[account.username]

    monkeypatch.setattr(auth, "password_grant_token", fake_grant)
    fake_reddit.subscriptions["old_user"] = ["t5_a"]
    body = {
        "auth_method": "password",
        "old_account_client_id": "cid-1",
        "old_account_client_secret": "secret-1",
        "old_account_username": "old_user",
        "old_account_password": "pw-1",
        "new_account_client_id": "cid-2",
        "new_account_client_secret": "secret-2",
        "new_account_username": "new_user",
        "new_account_password": "pw-2",
        "preferences": {"migrate_subreddit_bool": True},
    }

    resp = api.post("/api/migrate", json=body)

    assert resp.status_code == 200
    assert resp.json()["subscribe_subreddit"]["success_count"] == 1
    assert [(g.client_id, g.password) for g in grants] == [("cid-1", "pw-1"), ("cid-2", "pw-2")]
    assert fake_reddit.subscriptions["new_user"] == ["t5_a"]


def test_password_account_missing_fields_is_400(api):
    body = {"auth_method": "password", "old_account_username": "old_user", "preferences": {}}
    resp = api.post("/api/migrate", json=body)
    assert resp.status_code == 400
    assert "password auth" in resp.json()["message"]


def test_unknown_auth_method_is_400(api):
    before = REGISTRY.get_sample_value("reddit_migrate_stage_errors_total", {"stage": "validation"}) or 0.0

    resp = api.post("/api/migrate", json=_oauth(auth_method="saml", preferences={}))
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    resp = api.post("/api/subreddits", json={"auth_method": "bearer", "access_token": "src-token"})
    assert resp.status_code == 400

    after = REGISTRY.get_sample_value("reddit_migrate_stage_errors_total", {"stage": "validation"})
    assert after == before + 2
