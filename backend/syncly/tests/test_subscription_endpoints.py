"""Plan catalog, current-plan usage and plan-gated multi-shop endpoints."""

from decimal import Decimal

import pytest

from syncly.models import Plan, Shop


@pytest.fixture
def plans(test_db_session):
    rows = [
        Plan(name="Pro", slug="pro", price_monthly=Decimal("349000"), sort_order=2, is_featured=True),
        Plan(name="Starter", slug="starter", price_monthly=Decimal("149000"), sort_order=1),
        Plan(name="Legacy", slug="legacy", price_monthly=Decimal("99000"), sort_order=0, is_active=False),
    ]
    test_db_session.add_all(rows)
    test_db_session.commit()
    return rows


def test_plans_are_active_only_ordered_and_idempotent(client, plans):
    first = client.get("/api/subscription/plans")
    second = client.get("/api/subscription/plans")

    assert first.status_code == 200
    assert first.json() == second.json()
    assert [p["slug"] for p in first.json()["plans"]] == ["starter", "pro"]


def test_plans_do_not_require_authentication(client):
    response = client.get("/api/subscription/plans")

    assert response.status_code == 200
    assert response.json() == {"plans": []}


def test_current_subscription_reports_limits_and_usage(client, test_shop, make_product, make_order, auth_headers):
    make_product(test_shop)
    make_order(test_shop, total=10000)

    response = client.get("/api/subscription/current", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["plan"] == "trial"
    assert body["is_paid"] is False
    assert body["has_subscription"] is False
    assert body["limits"]["messages_per_month"] == 1000
    assert body["limits"]["instagram"] is False
    assert body["usage"]["products"] == 1
    assert body["usage"]["orders"] == 1
    assert body["usage"]["shops"] == 1
    assert body["usage"]["shops_limit"] == 1
    assert body["usage"]["messages_remaining"] == 1000


def test_legacy_plan_name_is_normalized(client, make_shop, auth_headers):
    make_shop(plan="professional")

    body = client.get("/api/subscription/current", headers=auth_headers).json()

    assert body["plan"] == "pro"
    assert body["is_paid"] is True
    assert body["limits"]["max_shops"] == 3


# ---------------------------------------------------------------------------
# /api/user/shops
# ---------------------------------------------------------------------------

def test_trial_account_cannot_add_second_shop(client, test_db_session, test_shop, auth_headers, owner_id):
    response = client.post("/api/user/shops", json={"name": "Second"}, headers=auth_headers)

    assert response.status_code == 403
    body = response.json()
    assert body["limit"] == 1
    assert body["current"] == 1
    assert body["plan"] == "trial"
    test_db_session.expire_all()
    assert test_db_session.query(Shop).filter(Shop.user_id == owner_id).count() == 1


def test_pro_account_can_add_shops_up_to_limit(client, make_shop, auth_headers):
    make_shop(plan="pro")

    created = [client.post("/api/user/shops", json={"name": f"Shop {i}"}, headers=auth_headers) for i in range(3)]

    assert [r.status_code for r in created] == [201, 201, 403]
    assert created[0].json()["shop"]["subscription_plan"] == "pro"


def test_account_without_shop_can_create_one(client, make_headers):
    response = client.post("/api/user/shops", json={"name": "First"}, headers=make_headers("user_brand_new"))

    assert response.status_code == 201
    assert response.json()["shop"]["subscription_plan"] == "trial"


def test_list_user_shops_oldest_first(client, test_shop, make_shop, other_shop, auth_headers):
    make_shop(name="Later Shop")

    shops = client.get("/api/user/shops", headers=auth_headers).json()["shops"]

    assert [s["name"] for s in shops] == ["Saraa's Shop", "Later Shop"]


def test_switch_shop_to_owned_shop(client, test_shop, auth_headers):
    response = client.post("/api/user/switch-shop", json={"shopId": str(test_shop.id)}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["message"] == "Switched to Saraa's Shop"


def test_switch_shop_to_foreign_shop_is_denied(client, test_shop, other_shop, auth_headers):
    response = client.post("/api/user/switch-shop", json={"shopId": str(other_shop.id)}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Shop not found or access denied"
