"""Tenant isolation across the session resolver, shop resolver and scoped writes.

WHAT: Verifies identities only ever reach their own shop's data.
WHY: The `x-shop-id` hint is client-held; a forged or stale hint must resolve
     to "not found", never to another tenant or a fallback shop.
"""

from datetime import datetime, timedelta

from syncly.models import Order, OrderStatusEnum
from syncly.security import create_session_token


def test_unauthenticated_request_is_rejected(client):
    response = client.get("/api/shop")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


def test_invalid_and_expired_tokens_are_unauthenticated(client, test_shop, owner_id):
    expired = create_session_token(owner_id, expires_minutes=-5)

    for token in ("not-a-jwt", expired):
        response = client.get("/api/shop", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


def test_session_cookie_is_accepted(client, test_shop, owner_id):
    client.cookies.set("__session", create_session_token(owner_id))

    response = client.get("/api/shop")

    assert response.status_code == 200
    assert response.json()["shop"]["id"] == str(test_shop.id)


def test_identity_without_shop_gets_not_found(client, make_headers):
    headers = make_headers("user_without_shop")

    assert client.get("/api/shop", headers=headers).status_code == 404
    assert client.get("/api/dashboard/orders", headers=headers).status_code == 404
    assert client.get("/api/dashboard/reports", headers=headers).status_code == 404


def test_default_resolution_picks_oldest_owned_shop(client, make_shop, auth_headers):
    newer = make_shop(name="Newer Shop", created_at=datetime.utcnow())
    oldest = make_shop(name="Oldest Shop", created_at=datetime.utcnow() - timedelta(days=10))

    response = client.get("/api/shop", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["shop"]["id"] == str(oldest.id)
    assert response.json()["shop"]["id"] != str(newer.id)


def test_shop_hint_selects_owned_shop(client, test_shop, make_shop, make_headers, owner_id):
    second = make_shop(name="Second Shop")

    response = client.get("/api/shop", headers=make_headers(owner_id, shop_id=second.id))

    assert response.status_code == 200
    assert response.json()["shop"]["name"] == "Second Shop"


def test_hint_for_another_owners_shop_is_not_found(client, test_shop, other_shop, make_headers, owner_id):
    response = client.get("/api/shop", headers=make_headers(owner_id, shop_id=other_shop.id))

    assert response.status_code == 404


def test_malformed_hint_is_not_found(client, test_shop, make_headers, owner_id):
    response = client.get("/api/shop", headers=make_headers(owner_id, shop_id="not-a-uuid"))

    assert response.status_code == 404


def test_cross_tenant_order_update_is_not_found_and_not_applied(
    client, test_db_session, test_shop, other_shop, make_order, auth_headers
):
    foreign_order = make_order(other_shop, status=OrderStatusEnum.pending, total=50000)
    foreign_id = foreign_order.id

    response = client.patch(
        "/api/dashboard/orders",
        json={"id": str(foreign_id), "status": "confirmed"},
        headers=auth_headers,
    )

    assert response.status_code == 404
    test_db_session.expire_all()
    assert test_db_session.get(Order, foreign_id).status == OrderStatusEnum.pending


def test_bulk_status_update_skips_foreign_orders(
    client, test_db_session, test_shop, other_shop, make_order, auth_headers
):
    own = make_order(test_shop, status=OrderStatusEnum.pending, total=10000)
    foreign = make_order(other_shop, status=OrderStatusEnum.pending, total=20000)
    own_id, foreign_id = own.id, foreign.id

    response = client.post(
        "/api/orders/bulk",
        json={"orderIds": [str(own_id), str(foreign_id)], "status": "shipped"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["updatedCount"] == 1
    assert body["message"] == "1 захиалга шинэчлэгдлээ"
    test_db_session.expire_all()
    assert test_db_session.get(Order, own_id).status == OrderStatusEnum.shipped
    assert test_db_session.get(Order, foreign_id).status == OrderStatusEnum.pending


def test_bulk_status_update_with_no_ids(client, test_shop, auth_headers):
    response = client.post("/api/orders/bulk", json={"orderIds": [], "status": "confirmed"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["updatedCount"] == 0


def test_bulk_status_update_rejects_bad_input(client, test_shop, auth_headers):
    bad_id = client.post("/api/orders/bulk", json={"orderIds": ["not-a-uuid"], "status": "shipped"}, headers=auth_headers)
    bad_status = client.post("/api/orders/bulk", json={"orderIds": [], "status": "lost"}, headers=auth_headers)

    assert bad_id.status_code == 400
    assert bad_status.status_code == 400


def test_order_listing_only_contains_own_orders(client, test_shop, other_shop, make_order, auth_headers):
    own = make_order(test_shop, total=10000)
    make_order(other_shop, total=20000)

    response = client.get("/api/dashboard/orders", headers=auth_headers)

    assert response.status_code == 200
    assert [o["id"] for o in response.json()["orders"]] == [str(own.id)]


def test_other_owner_sees_only_their_own_shop(client, test_shop, other_shop, other_auth_headers):
    response = client.get("/api/shop", headers=other_auth_headers)

    assert response.status_code == 200
    assert response.json()["shop"]["id"] == str(other_shop.id)
