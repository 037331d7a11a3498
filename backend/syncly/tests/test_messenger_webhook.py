"""Messenger webhook handshake, signed deliveries and AI reply gating."""

import hashlib
import hmac
import json
from datetime import datetime, timedelta

import pytest

from syncly.models import ChatHistory, Customer
from syncly.security import encrypt_secret
from syncly.services import ai_chat, facebook_graph

PAGE_ID = "page-1"


@pytest.fixture
def page_shop(make_shop):
    return make_shop(
        facebook_page_id=PAGE_ID,
        facebook_page_access_token=encrypt_secret("page-token-1", context="test"),
    )


@pytest.fixture
def stub_channels(monkeypatch):
    """Record model calls and Messenger sends instead of hitting OpenAI/Graph."""
    calls = {"generate": [], "send": []}

    async def fake_generate_reply(**kwargs):
        calls["generate"].append(kwargs)
        return "Тийм ээ, бэлэн байгаа."

    async def fake_send_text_message(page_token, recipient_id, text):
        calls["send"].append((page_token, recipient_id, text))
        return "mid.1"

    monkeypatch.setattr(ai_chat, "generate_reply", fake_generate_reply)
    monkeypatch.setattr(facebook_graph, "send_text_message", fake_send_text_message)
    return calls


@pytest.fixture
def deliver(client, test_settings):
    """POST a page event signed with the app secret, as Meta does."""

    def _deliver(payload: dict, *, secret: str = None):
        body = json.dumps(payload)
        digest = hmac.new(
            (secret or test_settings.FACEBOOK_APP_SECRET).encode("utf-8"), body.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return client.post(
            "/api/webhook",
            content=body,
            headers={"content-type": "application/json", "x-hub-signature-256": f"sha256={digest}"},
        )

    return _deliver


def _text_event(text: str, sender: str = "psid-1", page_id: str = PAGE_ID) -> dict:
    return {
        "object": "page",
        "entry": [
            {
                "id": page_id,
                "time": 1760000000,
                "messaging": [
                    {"sender": {"id": sender}, "recipient": {"id": page_id}, "message": {"mid": "m1", "text": text}}
                ],
            }
        ],
    }


# ---------------------------------------------------------------------------
# Subscription handshake
# ---------------------------------------------------------------------------

def test_handshake_echoes_challenge(client):
    response = client.get(
        "/api/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "1158201444"},
    )

    assert response.status_code == 200
    assert response.text == "1158201444"


def test_handshake_rejects_wrong_token(client):
    response = client.get(
        "/api/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1158201444"},
    )

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Deliveries
# ---------------------------------------------------------------------------

def test_unpaused_customer_gets_ai_reply(deliver, stub_channels, test_db_session, page_shop):
    response = deliver(_text_event("Ороолт байгаа юу?"))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert stub_channels["send"] == [("page-token-1", "psid-1", "Тийм ээ, бэлэн байгаа.")]
    assert stub_channels["generate"][0]["message"] == "Ороолт байгаа юу?"

    test_db_session.expire_all()
    customer = test_db_session.query(Customer).filter(Customer.facebook_id == "psid-1").one()
    assert customer.shop_id == page_shop.id
    row = test_db_session.query(ChatHistory).one()
    assert row.customer_id == customer.id
    assert row.response == "Тийм ээ, бэлэн байгаа."


def test_paused_customer_gets_no_ai_reply(deliver, stub_channels, test_db_session, page_shop, make_customer):
    make_customer(page_shop, name="Bold", facebook_id="psid-1", ai_paused_until=datetime.utcnow() + timedelta(minutes=20))

    response = deliver(_text_event("Хүргэлт хэзээ ирэх вэ?"))

    assert response.status_code == 200
    assert stub_channels["generate"] == []
    assert stub_channels["send"] == []
    test_db_session.expire_all()
    row = test_db_session.query(ChatHistory).one()
    assert row.message == "Хүргэлт хэзээ ирэх вэ?"
    assert row.response is None


def test_expired_pause_lets_ai_answer_again(deliver, stub_channels, page_shop, make_customer):
    make_customer(page_shop, name="Bold", facebook_id="psid-1", ai_paused_until=datetime.utcnow() - timedelta(minutes=1))

    deliver(_text_event("Сайн уу"))

    assert len(stub_channels["send"]) == 1


def test_shop_with_ai_switched_off_gets_no_reply(deliver, stub_channels, test_db_session, make_shop):
    make_shop(
        facebook_page_id=PAGE_ID,
        facebook_page_access_token=encrypt_secret("page-token-1", context="test"),
        is_ai_active=False,
    )

    deliver(_text_event("Сайн уу"))

    assert stub_channels["send"] == []
    test_db_session.expire_all()
    assert test_db_session.query(ChatHistory).count() == 1


def test_history_and_phone_are_carried(deliver, stub_channels, test_db_session, page_shop, make_customer):
    customer = make_customer(page_shop, name="Bold", facebook_id="psid-1")
    test_db_session.add(
        ChatHistory(
            shop_id=page_shop.id,
            customer_id=customer.id,
            message="Үнэ хэд вэ?",
            response="89,000₮",
            created_at=datetime.utcnow() - timedelta(minutes=5),
        )
    )
    test_db_session.commit()

    deliver(_text_event("Авъя, миний дугаар 99112233"))

    history = stub_channels["generate"][0]["history"]
    assert history == [
        {"role": "user", "content": "Үнэ хэд вэ?"},
        {"role": "assistant", "content": "89,000₮"},
    ]
    test_db_session.expire_all()
    assert test_db_session.get(Customer, customer.id).phone == "99112233"


def test_message_for_unknown_page_is_ignored(deliver, stub_channels, test_db_session, page_shop):
    response = deliver(_text_event("Сайн уу", page_id="page-unknown"))

    assert response.status_code == 200
    assert stub_channels["send"] == []
    assert test_db_session.query(ChatHistory).count() == 0


def test_non_page_object_is_rejected(deliver):
    response = deliver({"object": "instagram", "entry": []})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid object type"


def test_bad_signature_is_rejected(deliver, stub_channels, test_db_session, page_shop):
    response = deliver(_text_event("Сайн уу"), secret="not-the-app-secret")

    assert response.status_code == 403
    assert stub_channels["send"] == []
    assert test_db_session.query(ChatHistory).count() == 0
