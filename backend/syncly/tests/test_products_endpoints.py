"""Dashboard product catalog and image upload tests."""

from pathlib import Path

from syncly.models import Product


def test_create_service_product_has_unlimited_stock(client, test_shop, auth_headers):
    response = client.post(
        "/api/dashboard/products",
        json={"name": "Haircut", "price": 30000, "stock": 4, "type": "service"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    product = response.json()["product"]
    assert product["type"] == "service"
    assert product["stock"] is None


def test_create_physical_product_defaults_stock_to_zero(client, test_shop, auth_headers):
    response = client.post("/api/dashboard/products", json={"name": "Mug", "price": 12000}, headers=auth_headers)

    assert response.status_code == 201
    assert response.json()["product"]["stock"] == 0


def test_list_products_is_scoped_to_shop(client, test_shop, other_shop, make_product, auth_headers):
    own = make_product(test_shop, name="Own scarf")
    make_product(other_shop, name="Foreign scarf")

    response = client.get("/api/dashboard/products", headers=auth_headers)

    assert response.status_code == 200
    assert [p["id"] for p in response.json()["products"]] == [str(own.id)]


def test_update_product_changes_fields(client, test_shop, make_product, auth_headers):
    product = make_product(test_shop, price=10000)

    response = client.patch(
        "/api/dashboard/products",
        json={"id": str(product.id), "price": 12500, "discount_percent": 10},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["product"]["price"] == 12500
    assert response.json()["product"]["discount_percent"] == 10


def test_update_rejects_null_required_fields(client, test_db_session, test_shop, make_product, auth_headers):
    product = make_product(test_shop, name="Scarf", price=10000)
    product_id = product.id

    response = client.patch(
        "/api/dashboard/products",
        json={"id": str(product_id), "name": None, "price": None, "description": "Soft"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["fields"] == ["name", "price"]
    test_db_session.expire_all()
    unchanged = test_db_session.get(Product, product_id)
    assert unchanged.name == "Scarf"
    assert float(unchanged.price) == 10000
    assert unchanged.description is None


def test_update_allows_clearing_nullable_fields(client, test_shop, make_product, auth_headers):
    product = make_product(test_shop, discount_percent=15)

    response = client.patch(
        "/api/dashboard/products",
        json={"id": str(product.id), "discount_percent": None},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["product"]["discount_percent"] is None


def test_update_foreign_product_is_not_found(client, test_db_session, test_shop, other_shop, make_product, auth_headers):
    foreign = make_product(other_shop, name="Foreign", price=5000)
    foreign_id = foreign.id

    response = client.patch(
        "/api/dashboard/products",
        json={"id": str(foreign_id), "name": "Hijacked"},
        headers=auth_headers,
    )

    assert response.status_code == 404
    test_db_session.expire_all()
    assert test_db_session.get(Product, foreign_id).name == "Foreign"


def test_delete_product(client, test_db_session, test_shop, make_product, auth_headers):
    product = make_product(test_shop)
    product_id = product.id

    response = client.delete(f"/api/dashboard/products?id={product_id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    test_db_session.expire_all()
    assert test_db_session.get(Product, product_id) is None


def test_delete_foreign_product_is_not_found(client, test_db_session, test_shop, other_shop, make_product, auth_headers):
    foreign = make_product(other_shop)
    foreign_id = foreign.id

    response = client.delete(f"/api/dashboard/products?id={foreign_id}", headers=auth_headers)

    assert response.status_code == 404
    test_db_session.expire_all()
    assert test_db_session.get(Product, foreign_id) is not None


def test_upload_image_stores_file_under_shop_directory(client, test_shop, test_settings, auth_headers):
    response = client.post(
        "/api/dashboard/upload",
        files={"file": ("scarf.png", b"\x89PNG fake image bytes", "image/png")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    url = response.json()["url"]
    assert url.startswith(f"http://testserver/uploads/{test_shop.id}/")
    assert url.endswith(".png")

    stored = Path(test_settings.UPLOAD_DIR) / str(test_shop.id) / url.rsplit("/", 1)[1]
    assert stored.read_bytes() == b"\x89PNG fake image bytes"


def test_upload_rejects_unsupported_type(client, test_shop, auth_headers):
    response = client.post(
        "/api/dashboard/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Unsupported file type"


def test_upload_rejects_oversized_file(client, test_shop, auth_headers):
    response = client.post(
        "/api/dashboard/upload",
        files={"file": ("big.jpg", b"x" * 2048, "image/jpeg")},
        headers=auth_headers,
    )

    assert response.status_code == 413
