"""Push subscription registration and the AI assistant preview."""

from syncly.models import ChatHistory, PushSubscription
from syncly.services import ai_chat
from syncly.services.shop_scope import ShopScope


def _subscription(endpoint="https://push.example.com/abc"):
    return {"subscription": {"endpoint": endpoint, "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"}}}


def test_subscribe_twice_keeps_one_row(client, test_db_session, test_shop, auth_headers):
    first = client.post("/api/push/subscribe", json=_subscription(), headers=auth_headers)
    second = client.post("/api/push/subscribe", json=_subscription(), headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    test_db_session.expire_all()
    rows = test_db_session.query(PushSubscription).all()
    assert len(rows) == 1
    assert rows[0].shop_id == test_shop.id


def test_unsubscribe_removes_endpoint(client, test_db_session, test_shop, auth_headers):
    client.post("/api/push/subscribe", json=_subscription(), headers=auth_headers)

    response = client.request(
        "DELETE", "/api/push/subscribe", json={"endpoint": "https://push.example.com/abc"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    test_db_session.expire_all()
    assert test_db_session.query(PushSubscription).count() == 0


def test_subscribe_requires_keys(client, test_shop, auth_headers):
    response = client.post(
        "/api/push/subscribe",
        json={"subscription": {"endpoint": "https://push.example.com/abc"}},
        headers=auth_headers,
    )

    assert response.status_code == 400


def test_vapid_key_is_public(client):
    response = client.get("/api/push/vapid")

    assert response.status_code == 200
    assert response.json() == {"publicKey": "test-vapid-public-key"}


# ---------------------------------------------------------------------------
# AI preview
# ---------------------------------------------------------------------------

def test_chat_preview_uses_plan_model_without_recording_history(client, monkeypatch, test_db_session, test_shop, auth_headers):
    calls = {}

    async def fake_generate_reply(**kwargs):
        calls.update(kwargs)
        return "Сайн байна уу! Манайд ороолт байна."

    monkeypatch.setattr(ai_chat, "generate_reply", fake_generate_reply)

    response = client.post("/api/chat/test", json={"message": "Ямар бараа байна вэ?"}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["model"] == "gpt-5-mini"
    assert body["remainingMessages"] == 1000
    assert body["message"] == "Сайн байна уу! Манайд ороолт байна."
    assert calls["message"] == "Ямар бараа байна вэ?"
    assert calls["limits"].plan == "trial"

    test_db_session.expire_all()
    assert test_db_session.query(ChatHistory).count() == 0


def test_chat_preview_blocked_when_quota_exhausted(client, monkeypatch, test_shop, auth_headers):
    async def fail_generate_reply(**kwargs):
        raise AssertionError("model must not be called over quota")

    monkeypatch.setattr(ai_chat, "generate_reply", fail_generate_reply)
    monkeypatch.setattr(ShopScope, "count_messages", lambda self, start: 1000)

    response = client.post("/api/chat/test", json={"message": "hello"}, headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["limit"] == 1000
    assert response.json()["remaining"] == 0
