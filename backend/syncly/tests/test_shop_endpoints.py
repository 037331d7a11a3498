"""Shop profile and setup-wizard endpoint tests."""

from syncly.models import Product, Shop
from syncly.security import encrypt_secret


def test_create_first_shop_then_reject_second(client, make_headers):
    headers = make_headers("user_fresh_001")

    created = client.post("/api/shop", json={"name": "  Nomin Boutique ", "phone": "99112233"}, headers=headers)
    assert created.status_code == 201
    body = created.json()["shop"]
    assert body["name"] == "Nomin Boutique"
    assert body["subscription_plan"] == "trial"
    assert body["setup_completed"] is False

    again = client.post("/api/shop", json={"name": "Another"}, headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Shop already exists"


def test_create_shop_requires_name(client, make_headers):
    response = client.post("/api/shop", json={"phone": "99112233"}, headers=make_headers("user_fresh_002"))

    assert response.status_code == 400


def test_patch_shop_updates_whitelisted_fields_only(client, test_shop, auth_headers):
    response = client.patch(
        "/api/shop",
        json={
            "ai_instructions": "Always greet in Mongolian",
            "is_ai_active": False,
            "subscription_plan": "ultimate",
            "user_id": "someone_else",
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    shop = response.json()["shop"]
    assert shop["ai_instructions"] == "Always greet in Mongolian"
    assert shop["is_ai_active"] is False
    assert shop["subscription_plan"] == "trial"


def test_patch_shop_ignores_null_name(client, test_shop, auth_headers):
    response = client.patch("/api/shop", json={"name": None, "phone": "88001122"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["shop"]["name"] == "Saraa's Shop"
    assert response.json()["shop"]["phone"] == "88001122"


def test_bulk_products_inserts_valid_entries_and_completes_setup(client, test_db_session, test_shop, auth_headers):
    response = client.post(
        "/api/shop/products",
        json={
            "products": [
                {"name": "Wool hat", "price": "45000", "stock": "3", "colors": ["black", ""]},
                {"name": "", "price": 1000},
            ]
        },
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["products"]) == 1
    assert body["products"][0]["name"] == "Wool hat"
    assert body["products"][0]["price"] == 45000
    assert body["products"][0]["colors"] == ["black"]
    assert body["message"] == "1 бүтээгдэхүүн нэмэгдлээ"

    test_db_session.expire_all()
    assert test_db_session.query(Product).filter(Product.shop_id == test_shop.id).count() == 1
    assert test_db_session.get(Shop, test_shop.id).setup_completed is True


def test_bulk_products_without_valid_entries(client, test_db_session, test_shop, auth_headers):
    response = client.post(
        "/api/shop/products",
        json={"products": [{"name": "No price"}, {"price": 100}]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"products": [], "message": "No valid products to add"}
    test_db_session.expire_all()
    assert test_db_session.get(Shop, test_shop.id).setup_completed is False


def test_bulk_products_requires_array(client, test_shop, auth_headers):
    response = client.post("/api/shop/products", json={"products": "scarf"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Products array required"


def test_disconnect_facebook_clears_page_fields(client, test_db_session, make_shop, auth_headers):
    shop = make_shop(
        facebook_page_id="page-1",
        facebook_page_name="Saraa Page",
        facebook_page_access_token=encrypt_secret("page-token", context="page:page-1"),
        instagram_business_account_id="ig-1",
    )

    response = client.post("/api/shop/disconnect", json={"platform": "facebook"}, headers=auth_headers)

    assert response.status_code == 200
    test_db_session.expire_all()
    refreshed = test_db_session.get(Shop, shop.id)
    assert refreshed.facebook_page_id is None
    assert refreshed.facebook_page_access_token is None
    assert refreshed.instagram_business_account_id == "ig-1"


def test_disconnect_rejects_unknown_platform(client, test_shop, auth_headers):
    response = client.post("/api/shop/disconnect", json={"platform": "tiktok"}, headers=auth_headers)

    assert response.status_code == 400


def test_shop_response_never_contains_tokens(client, make_shop, auth_headers):
    make_shop(facebook_page_id="page-1", facebook_page_access_token=encrypt_secret("secret", context="page:page-1"))

    shop = client.get("/api/shop", headers=auth_headers).json()["shop"]

    assert "facebook_page_access_token" not in shop
    assert "instagram_access_token" not in shop
