import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import therianr.main as m
from therianr import repo
from therianr.auth import security
from therianr.auth.deps import SESSION_COOKIE_NAME
from therianr.services import swipes

SECRET = "test-secret"


@pytest.fixture
def client(monkeypatch, store, dispatcher):
    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "run_migrations", lambda *args, **kwargs: None)
    monkeypatch.setattr(security, "JWT_SECRET", SECRET)
    store.add_user("user-a", created_offset_minutes=2)
    store.add_user("user-b", created_offset_minutes=1)
    return TestClient(m.app)


def _auth(user_id):
    return {"Authorization": f"Bearer {security.create_access_token(user_id, secret=SECRET)}"}


def test_mutual_like_flow(client, store, dispatcher):
    A, B = _auth("user-a"), _auth("user-b")

    r = client.get("/discover", headers=A)
    assert r.status_code == 200
    assert [c["id"] for c in r.json()] == ["user-b"]

    r = client.post("/discover/swipe", json={"targetId": "user-b", "type": "like"}, headers=A)
    assert r.status_code == 200
    assert r.json() == {"matched": False}

    r = client.get("/discover", headers=B)
    assert [c["id"] for c in r.json()] == ["user-a"]

    r = client.post("/discover/swipe", json={"targetId": "user-a", "type": "like"}, headers=B)
    assert r.status_code == 200
    body = r.json()
    assert body["matched"] is True
    match_id = body["matchId"]

    r = client.get("/matches", headers=A)
    assert r.status_code == 200
    [match] = r.json()
    assert match["matchId"] == match_id
    assert match["otherUser"]["id"] == "user-b"

    assert dispatcher.calls == [("match", "user-a", "user-b")]
    assert client.get("/discover", headers=A).json() == []


def test_block_flow(client, store):
    A, B = _auth("user-a"), _auth("user-b")
    client.post("/discover/swipe", json={"targetId": "user-b", "type": "like"}, headers=A)
    client.post("/discover/swipe", json={"targetId": "user-a", "type": "like"}, headers=B)

    r = client.post("/blocks", json={"targetId": "user-b"}, headers=A)
    assert r.status_code == 200
    assert r.json() == {"success": True, "matchRemoved": True}

    assert client.get("/matches", headers=A).json() == []
    assert client.get("/matches", headers=B).json() == []

    r = client.post("/discover/swipe", json={"targetId": "user-a", "type": "like"}, headers=B)
    assert r.status_code == 404
    assert r.json() == {"error": "Target user not found"}

    r = client.post("/blocks", json={"targetId": "user-b"}, headers=A)
    assert r.status_code == 409

    r = client.get("/blocks", headers=A)
    assert [b["blockedUser"]["id"] for b in r.json()] == ["user-b"]

    assert client.delete("/blocks/user-b", headers=A).status_code == 200
    assert client.delete("/blocks/user-b", headers=A).status_code == 404


def test_swipe_validation_errors(client):
    A = _auth("user-a")
    r = client.post("/discover/swipe", json={"targetId": "user-b", "type": "maybe"}, headers=A)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid swipe type"}

    r = client.post("/discover/swipe", json={"targetId": "user-a", "type": "like"}, headers=A)
    assert r.status_code == 400

    r = client.post("/discover/swipe", json={"targetId": "ghost", "type": "like"}, headers=A)
    assert r.status_code == 404


def test_daily_quota_over_http(client, monkeypatch):
    monkeypatch.setattr(swipes, "DAILY_SWIPE_LIMIT", 1)
    A = _auth("user-a")
    client.post("/discover/swipe", json={"targetId": "user-b", "type": "pass"}, headers=A)

    r = client.post("/discover/swipe", json={"targetId": "user-b", "type": "like"}, headers=A)

    assert r.status_code == 429
    assert r.json()["code"] == "daily_quota_exceeded"
    assert client.get("/discover/swipe-count", headers=A).json() == {"used": 1, "remaining": 0, "limit": 1}


def test_match_routes_over_http(client, store):
    match = store.add_match("user-a", "user-b")
    store.add_user("user-x")
    A, X = _auth("user-a"), _auth("user-x")

    r = client.post(f"/matches/{match['id']}/messages", json={"content": "hi"}, headers=A)
    assert r.status_code == 200
    assert r.json()["content"] == "hi"

    assert client.get(f"/matches/{match['id']}/messages", headers=X).status_code == 403
    assert client.get("/matches/nope/messages", headers=A).status_code == 404

    r = client.get(f"/matches/{match['id']}/messages", headers=_auth("user-b"))
    assert [msg["content"] for msg in r.json()] == ["hi"]
    r = client.put(f"/matches/{match['id']}/messages/read", headers=_auth("user-b"))
    assert r.json() == {"success": True, "count": 1}

    assert client.delete(f"/matches/{match['id']}", headers=X).status_code == 403
    assert client.delete(f"/matches/{match['id']}", headers=A).json() == {"success": True}


def test_reports(client, store):
    A = _auth("user-a")
    r = client.post("/reports", json={"targetId": "user-b", "reason": "spam", "details": "bot"}, headers=A)
    assert r.status_code == 200
    assert store.reports[0]["reason"] == "spam"
    assert "report_created" in store.event_names()

    assert client.post("/reports", json={"targetId": "user-b", "reason": "rude"}, headers=A).status_code == 400
    assert client.post("/reports", json={"targetId": "user-a", "reason": "spam"}, headers=A).status_code == 400
    assert client.post("/reports", json={"targetId": "ghost", "reason": "spam"}, headers=A).status_code == 404
    r = client.post("/reports", json={"targetId": "user-b", "reason": "other", "details": "x" * 1001}, headers=A)
    assert r.status_code == 400


def test_push_token_registration(client, store):
    A = _auth("user-a")
    r = client.post("/notifications/register-token", json={"token": "tok-1", "platform": "ios"}, headers=A)
    assert r.json() == {"success": True}
    assert store.push_tokens == {("user-a", "tok-1"): "ios"}

    r = client.post("/notifications/register-token", json={"token": "tok-2", "platform": "desktop"}, headers=A)
    assert r.status_code == 400

    client.post("/notifications/remove-token", json={"token": "tok-1"}, headers=A)
    assert store.push_tokens == {}


def test_storage_timeout_is_503(client, monkeypatch):
    def slow(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("canceling statement due to statement timeout"))

    monkeypatch.setattr(repo, "list_blocks", slow)
    r = client.get("/blocks", headers=_auth("user-a"))
    assert r.status_code == 503
    assert r.json() == {"error": "Storage unavailable"}


def test_cookie_auth_and_health(client):
    token = security.create_access_token("user-a", secret=SECRET)
    client.cookies.set(SESSION_COOKIE_NAME, token)
    assert client.get("/blocks").status_code == 200
    client.cookies.clear()

    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
