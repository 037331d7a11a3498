"""Facebook/Instagram OAuth redirects, callbacks and page selection."""

import json
from urllib.parse import parse_qs, urlparse

from syncly.models import Shop
from syncly.security import decrypt_secret, encrypt_secret
from syncly.services import facebook_graph


def _query(response) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(response.headers["location"]).query).items()}


def _stub_graph(monkeypatch, pages):
    async def fake_exchange_code(code, *, redirect_uri, app_id, app_secret):
        assert code == "auth-code"
        return "short-user-token"

    async def fake_exchange_long_lived(token, *, app_id, app_secret):
        return "long-user-token"

    async def fake_list_pages(user_token, *, fields=facebook_graph.PAGE_FIELDS):
        return pages

    monkeypatch.setattr(facebook_graph, "exchange_code", fake_exchange_code)
    monkeypatch.setattr(facebook_graph, "exchange_long_lived", fake_exchange_long_lived)
    monkeypatch.setattr(facebook_graph, "list_pages", fake_list_pages)


def test_authorize_redirects_with_state_cookie(client, auth_headers):
    response = client.get("/api/auth/facebook", headers=auth_headers, follow_redirects=False)

    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("https://www.facebook.com/v21.0/dialog/oauth")
    params = _query(response)
    assert params["client_id"] == "test-fb-app"
    assert params["redirect_uri"] == "http://testserver/api/auth/facebook/callback"
    assert "pages_messaging" in params["scope"]
    assert response.cookies.get("fb_oauth_state") == params["state"]


def test_authorize_requires_authentication(client):
    response = client.get("/api/auth/facebook", follow_redirects=False)

    assert response.status_code == 401


def test_callback_rejects_state_mismatch(client):
    client.cookies.set("fb_oauth_state", "expected-state")

    response = client.get(
        "/api/auth/facebook/callback?code=auth-code&state=forged-state", follow_redirects=False
    )

    assert response.status_code == 302
    assert response.headers["location"].startswith("http://localhost:3000/setup?")
    assert _query(response) == {"fb_error": "invalid_state"}


def test_callback_stores_pages_in_encrypted_cookie(client, monkeypatch):
    _stub_graph(
        monkeypatch,
        [
            {"id": "page-1", "name": "Saraa Boutique", "access_token": "page-token-1", "category": "Shopping"},
            {"id": "page-2", "name": "No token page"},
        ],
    )
    client.cookies.set("fb_oauth_state", "state-123")

    response = client.get("/api/auth/facebook/callback?code=auth-code&state=state-123", follow_redirects=False)

    assert response.status_code == 302
    assert _query(response) == {"fb_success": "true", "page_count": "1"}
    stored = json.loads(decrypt_secret(response.cookies["fb_pages"].strip('"'), context="fb_pages"))
    assert stored == [
        {"id": "page-1", "name": "Saraa Boutique", "access_token": "page-token-1", "category": "Shopping"}
    ]


def test_callback_without_pages(client, monkeypatch):
    _stub_graph(monkeypatch, [])
    client.cookies.set("fb_oauth_state", "state-123")

    response = client.get("/api/auth/facebook/callback?code=auth-code&state=state-123", follow_redirects=False)

    assert _query(response) == {"fb_error": "no_pages"}


def test_callback_propagates_provider_error(client):
    response = client.get(
        "/api/auth/facebook/callback?error=access_denied&error_reason=user_denied", follow_redirects=False
    )

    assert _query(response) == {"fb_error": "user_denied"}


def _pages_cookie(pages) -> str:
    return encrypt_secret(json.dumps(pages), context="fb_pages")


def test_list_pages_never_returns_tokens(client, auth_headers):
    client.cookies.set(
        "fb_pages",
        _pages_cookie([{"id": "page-1", "name": "Saraa Boutique", "access_token": "secret-token", "category": None}]),
    )

    response = client.get("/api/auth/facebook/pages", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["pages"] == [{"id": "page-1", "name": "Saraa Boutique", "category": None}]
    assert "secret-token" not in response.text


def test_list_pages_without_cookie(client, auth_headers):
    body = client.get("/api/auth/facebook/pages", headers=auth_headers).json()

    assert body["pages"] == []
    assert body["message"]


def test_connect_page_stores_encrypted_token(client, test_db_session, test_shop, auth_headers):
    client.cookies.set(
        "fb_pages",
        _pages_cookie([{"id": "page-1", "name": "Saraa Boutique", "access_token": "page-token-1", "category": None}]),
    )

    response = client.post("/api/auth/facebook/pages", json={"pageId": "page-1"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["shop"]["facebook_page_id"] == "page-1"
    test_db_session.expire_all()
    shop = test_db_session.get(Shop, test_shop.id)
    assert shop.facebook_page_name == "Saraa Boutique"
    assert shop.facebook_page_access_token != "page-token-1"
    assert decrypt_secret(shop.facebook_page_access_token, context="test") == "page-token-1"


def test_connect_unknown_page(client, test_shop, auth_headers):
    client.cookies.set("fb_pages", _pages_cookie([{"id": "page-1", "name": "A", "access_token": "t"}]))

    response = client.post("/api/auth/facebook/pages", json={"pageId": "page-9"}, headers=auth_headers)

    assert response.status_code == 404


def test_connect_page_without_session_cookie(client, test_shop, auth_headers):
    response = client.post("/api/auth/facebook/pages", json={"pageId": "page-1"}, headers=auth_headers)

    assert response.status_code == 400


# ---------------------------------------------------------------------------
# Instagram
# ---------------------------------------------------------------------------

def test_instagram_is_gated_on_trial_plan(client, test_shop, auth_headers):
    response = client.get("/api/auth/instagram", headers=auth_headers, follow_redirects=False)

    assert response.status_code == 403
    assert response.json()["plan"] == "trial"


def test_instagram_redirect_for_pro_plan(client, make_shop, auth_headers):
    make_shop(plan="pro")

    response = client.get("/api/auth/instagram", headers=auth_headers, follow_redirects=False)

    assert response.status_code == 302
    assert "instagram_manage_messages" in _query(response)["scope"]
    assert response.cookies.get("ig_oauth_state")


def test_connect_instagram_account(client, test_db_session, make_shop, auth_headers):
    shop = make_shop(plan="pro")
    accounts = [
        {
            "pageId": "page-1",
            "pageName": "Saraa Boutique",
            "pageAccessToken": "ig-page-token",
            "instagramId": "ig-42",
            "instagramUsername": "saraa.boutique",
            "instagramName": "Saraa",
            "profilePicture": "",
        }
    ]
    client.cookies.set("ig_accounts", encrypt_secret(json.dumps(accounts), context="ig_accounts"))

    listed = client.get("/api/auth/instagram/accounts", headers=auth_headers).json()["accounts"]
    assert listed[0]["instagramUsername"] == "saraa.boutique"
    assert "pageAccessToken" not in listed[0]

    response = client.post("/api/auth/instagram/accounts", json={"instagramId": "ig-42"}, headers=auth_headers)

    assert response.status_code == 200
    test_db_session.expire_all()
    refreshed = test_db_session.get(Shop, shop.id)
    assert refreshed.instagram_business_account_id == "ig-42"
    assert refreshed.instagram_username == "saraa.boutique"
    assert decrypt_secret(refreshed.instagram_access_token, context="test") == "ig-page-token"
