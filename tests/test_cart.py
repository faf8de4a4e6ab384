from decimal import Decimal

from sqlmodel import select

from conftest import bearer, make_user, stock_of
from grocery.models.cart import Cart, CartItem


def _cart(session, user):
    session.expire_all()
    return session.exec(select(Cart).where(Cart.user_id == user.id)).first()


def test_get_cart_creates_empty_cart(client, session, user, auth_headers):
    response = client.get("/api/cart", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["cartItems"] == []
    assert body["data"]["total_amount"] == 0
    assert _cart(session, user) is not None


def test_cart_requires_authentication(client, session):
    response = client.get("/api/cart")

    assert response.status_code == 401
    assert response.json()["status"] == "error"


def test_add_update_remove_keeps_total_in_sync(client, session, user, auth_headers, product):
    response = client.post(
        "/api/cart/items",
        json={"productId": product.id, "quantity": 3},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["cart"]["total_amount"] == 8.97
    assert data["item"]["price"] == 8.97
    assert data["item"]["unit_price"] == 2.99
    item_id = data["item"]["id"]

    response = client.put(
        f"/api/cart/items/{item_id}",
        json={"quantity": 5},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["cart"]["total_amount"] == 14.95

    response = client.delete(f"/api/cart/items/{item_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["total_amount"] == 0
    assert response.json()["data"]["cartItems"] == []


def test_adding_same_product_twice_merges_lines(client, session, user, auth_headers, product):
    client.post("/api/cart/items", json={"productId": product.id, "quantity": 2}, headers=auth_headers)
    response = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 4}, headers=auth_headers
    )

    assert response.status_code == 200
    cart = _cart(session, user)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 6
    assert cart.total_amount == Decimal("17.94")


def test_total_matches_sum_of_lines(client, session, user, auth_headers, make_product):
    apple = make_product("Apple", "2.99", 10)
    milk = make_product("Milk", "1.25", 10)

    client.post("/api/cart/items", json={"productId": apple.id, "quantity": 2}, headers=auth_headers)
    client.post("/api/cart/items", json={"productId": milk.id, "quantity": 3}, headers=auth_headers)

    cart = _cart(session, user)
    assert cart.total_amount == sum(item.price for item in cart.items)
    assert cart.total_amount == Decimal("9.73")


def test_add_more_than_stock_fails_without_mutation(client, session, user, auth_headers, make_product):
    product = make_product("Bread", "3.50", 2)

    response = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 3}, headers=auth_headers
    )

    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["message"]
    assert session.exec(select(CartItem)).all() == []
    assert stock_of(session, product.id) == 2


def test_merge_is_checked_against_stock(client, session, user, auth_headers, make_product):
    product = make_product("Eggs", "4.00", 5)
    client.post("/api/cart/items", json={"productId": product.id, "quantity": 3}, headers=auth_headers)

    response = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 3}, headers=auth_headers
    )

    assert response.status_code == 400
    cart = _cart(session, user)
    assert cart.items[0].quantity == 3
    assert cart.total_amount == Decimal("12.00")


def test_add_unknown_product_is_not_found(client, session, user, auth_headers):
    response = client.post(
        "/api/cart/items", json={"productId": 999, "quantity": 1}, headers=auth_headers
    )

    assert response.status_code == 404
    assert _cart(session, user) is None


def test_update_beyond_stock_keeps_line(client, session, user, auth_headers, product):
    added = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=auth_headers
    ).json()["data"]["item"]

    response = client.put(
        f"/api/cart/items/{added['id']}", json={"quantity": 11}, headers=auth_headers
    )

    assert response.status_code == 400
    cart = _cart(session, user)
    assert cart.items[0].quantity == 1
    assert cart.total_amount == Decimal("2.99")


def test_zero_quantity_is_rejected(client, session, user, auth_headers, product):
    response = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 0}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["message"][0]["field"] == "quantity"


def test_cannot_touch_another_users_cart_item(client, session, user, auth_headers, product):
    added = client.post(
        "/api/cart/items", json={"productId": product.id, "quantity": 1}, headers=auth_headers
    ).json()["data"]["item"]
    intruder = make_user(session, username="mallory", email="mallory@example.com")

    response = client.put(
        f"/api/cart/items/{added['id']}", json={"quantity": 2}, headers=bearer(intruder)
    )
    assert response.status_code == 404

    response = client.delete(f"/api/cart/items/{added['id']}", headers=bearer(intruder))
    assert response.status_code == 404

    assert _cart(session, user).items[0].quantity == 1


def test_price_snapshot_is_kept_until_line_changes(client, session, user, auth_headers, product):
    client.post("/api/cart/items", json={"productId": product.id, "quantity": 2}, headers=auth_headers)

    product.price = Decimal("5.00")
    session.add(product)
    session.commit()

    cart = client.get("/api/cart", headers=auth_headers).json()["data"]
    assert cart["total_amount"] == 5.98
    assert cart["cartItems"][0]["productDetails"]["price"] == 5.0


def test_clear_cart_is_idempotent(client, session, user, auth_headers, make_product):
    apple = make_product("Apple", "2.99", 10)
    milk = make_product("Milk", "1.25", 10)
    client.post("/api/cart/items", json={"productId": apple.id, "quantity": 1}, headers=auth_headers)
    client.post("/api/cart/items", json={"productId": milk.id, "quantity": 1}, headers=auth_headers)

    first = client.delete("/api/cart/clear", headers=auth_headers)
    second = client.delete("/api/cart/clear", headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["data"]["total_amount"] == 0
    assert session.exec(select(CartItem)).all() == []
