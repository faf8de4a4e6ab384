from decimal import Decimal

from sqlmodel import select

from grocery.models.cart import Cart
from grocery.models.category import Category
from grocery.models.product import Product


def test_admin_creates_category_and_product(client, session, admin_headers):
    category = client.post(
        "/api/categories", json={"name": "Dairy", "description": "Milk and cheese"}, headers=admin_headers
    )
    assert category.status_code == 201
    category_id = category.json()["data"]["id"]

    product = client.post(
        "/api/products",
        json={
            "name": "Cheddar",
            "description": "Aged cheddar",
            "price": "7.25",
            "stock": 12,
            "categoryId": category_id,
            "imageUrl": "https://cdn.example.com/cheddar.jpg",
        },
        headers=admin_headers,
    )

    assert product.status_code == 201
    data = product.json()["data"]
    assert data["price"] == 7.25
    assert data["category"] == "Dairy"
    assert data["in_stock"] is True
    assert data["image_url"] == "https://cdn.example.com/cheddar.jpg"


def test_duplicate_category_name(client, session, admin_headers, category):
    response = client.post("/api/categories", json={"name": category.name}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Category already exists"


def test_product_needs_existing_category(client, session, admin_headers):
    response = client.post(
        "/api/products",
        json={"name": "Ghost", "description": "?", "price": "1.00", "stock": 1, "categoryId": 77},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_negative_price_or_stock_is_rejected(client, session, admin_headers, category):
    base = {"name": "Odd", "description": "?", "categoryId": category.id}

    negative_price = client.post(
        "/api/products", json={**base, "price": "-1.00", "stock": 1}, headers=admin_headers
    )
    negative_stock = client.post(
        "/api/products", json={**base, "price": "1.00", "stock": -1}, headers=admin_headers
    )

    assert negative_price.status_code == 400
    assert negative_stock.status_code == 400
    assert session.exec(select(Product)).all() == []


def test_list_products_filters_and_paginates(client, session, make_product):
    make_product("Apple", "2.99", 10)
    make_product("Banana", "0.59", 10)
    make_product("Avocado", "1.80", 10)
    make_product("Pineapple", "4.20", 10)

    response = client.get("/api/products?search=apple&sort=price&limit=1")

    body = response.json()
    assert response.status_code == 200
    assert [p["name"] for p in body["data"]] == ["Pineapple"]
    assert body["pagination"] == {"page": 1, "limit": 1, "totalItems": 2, "totalPages": 2}

    in_range = client.get("/api/products?minPrice=1&maxPrice=3&sort=name").json()["data"]
    assert [p["name"] for p in in_range] == ["Avocado", "Apple"]


def test_list_products_by_category(client, session, make_product):
    make_product("Apple", "2.99", 10)
    bakery = Category(name="Bakery")
    session.add(bakery)
    session.commit()
    session.add(Product(name="Rye", description="Bread", price=Decimal("3.10"), stock=4, category_id=bakery.id))
    session.commit()

    filtered = client.get(f"/api/products?category={bakery.id}").json()["data"]
    nested = client.get(f"/api/categories/{bakery.id}/products").json()

    assert [p["name"] for p in filtered] == ["Rye"]
    assert [p["name"] for p in nested["data"]] == ["Rye"]
    assert nested["pagination"]["totalItems"] == 1


def test_invalid_sort_field(client, session):
    response = client.get("/api/products?sort=popularity")

    assert response.status_code == 400


def test_get_missing_product(client, session):
    response = client.get("/api/products/31337")

    assert response.status_code == 404
    assert response.json()["message"] == "Product 31337 not found"


def test_update_product(client, session, admin_headers, product):
    response = client.put(
        f"/api/products/{product.id}", json={"price": "3.49", "stock": 0}, headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 3.49
    assert data["in_stock"] is False
    assert data["name"] == "Apple"


def test_delete_product_refreshes_carts(client, session, user, auth_headers, admin_headers, make_product):
    apple = make_product("Apple", "2.99", 10)
    milk = make_product("Milk", "1.25", 10)
    client.post("/api/cart/items", json={"productId": apple.id, "quantity": 1}, headers=auth_headers)
    client.post("/api/cart/items", json={"productId": milk.id, "quantity": 2}, headers=auth_headers)

    response = client.delete(f"/api/products/{apple.id}", headers=admin_headers)

    assert response.status_code == 200
    session.expire_all()
    cart = session.exec(select(Cart).where(Cart.user_id == user.id)).one()
    assert [item.product_id for item in cart.items] == [milk.id]
    assert cart.total_amount == Decimal("2.50")


def test_ordered_product_cannot_be_deleted(client, session, auth_headers, admin_headers, product):
    client.post(
        "/api/orders/create",
        json={"items": [{"productId": product.id, "quantity": 1}], "shippingAddress": "1 Elm St"},
        headers=auth_headers,
    )

    response = client.delete(f"/api/products/{product.id}", headers=admin_headers)

    assert response.status_code == 400
    session.expire_all()
    assert session.get(Product, product.id) is not None


def test_category_with_products_cannot_be_deleted(client, session, admin_headers, product):
    response = client.delete(f"/api/categories/{product.category_id}", headers=admin_headers)

    assert response.status_code == 400


def test_update_and_delete_empty_category(client, session, admin_headers, category):
    renamed = client.put(
        f"/api/categories/{category.id}", json={"name": "Fresh Produce"}, headers=admin_headers
    )
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == "Fresh Produce"

    deleted = client.delete(f"/api/categories/{category.id}", headers=admin_headers)
    assert deleted.status_code == 200

    assert client.get("/api/categories").json()["data"] == []
    assert client.delete(f"/api/categories/{category.id}", headers=admin_headers).status_code == 404


def test_health(client, session):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["data"]["database"] == "ok"
