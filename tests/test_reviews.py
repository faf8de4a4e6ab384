import pytest

from conftest import bearer, make_user


@pytest.fixture(name="delivered_order")
def delivered_order_fixture(client, session, user, auth_headers, admin_headers, product):
    order_id = client.post(
        "/api/orders/create",
        json={"items": [{"productId": product.id, "quantity": 1}], "shippingAddress": "1 Elm St"},
        headers=auth_headers,
    ).json()["data"]["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers)
    return order_id


def _review(client, headers, product_id, rating=5, comment="Crisp and sweet"):
    return client.post(
        "/api/reviews",
        json={"productId": product_id, "rating": rating, "comment": comment},
        headers=headers,
    )


def test_review_requires_delivered_purchase(client, session, user, auth_headers, product):
    response = _review(client, auth_headers, product.id)

    assert response.status_code == 403


def test_pending_order_is_not_enough(client, session, user, auth_headers, product):
    client.post(
        "/api/orders/create",
        json={"items": [{"productId": product.id, "quantity": 1}], "shippingAddress": "1 Elm St"},
        headers=auth_headers,
    )

    response = _review(client, auth_headers, product.id)

    assert response.status_code == 403


def test_buyer_reviews_once(client, session, auth_headers, product, delivered_order):
    first = _review(client, auth_headers, product.id)
    second = _review(client, auth_headers, product.id, rating=1)

    assert first.status_code == 201
    assert first.json()["data"]["rating"] == 5
    assert second.status_code == 400
    assert second.json()["message"] == "You have already reviewed this product"


def test_rating_must_be_between_one_and_five(client, session, auth_headers, product, delivered_order):
    response = _review(client, auth_headers, product.id, rating=6)

    assert response.status_code == 400
    assert response.json()["message"][0]["field"] == "rating"


def test_product_reviews_include_average(client, session, auth_headers, admin_headers, product, delivered_order):
    _review(client, auth_headers, product.id, rating=4)

    buyer = make_user(session, username="dave", email="dave@example.com")
    order_id = client.post(
        "/api/orders/create",
        json={"items": [{"productId": product.id, "quantity": 1}], "shippingAddress": "2 Oak St"},
        headers=bearer(buyer),
    ).json()["data"]["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers)
    _review(client, bearer(buyer), product.id, rating=5)

    data = client.get(f"/api/reviews/product/{product.id}").json()["data"]

    assert data["totalReviews"] == 2
    assert data["averageRating"] == 4.5
    assert {r["username"] for r in data["reviews"]} == {"alice", "dave"}


def test_only_author_can_edit_or_delete(client, session, auth_headers, product, delivered_order):
    review_id = _review(client, auth_headers, product.id).json()["data"]["id"]
    stranger = bearer(make_user(session, username="erin", email="erin@example.com"))

    assert client.put(f"/api/reviews/{review_id}", json={"rating": 1}, headers=stranger).status_code == 404
    assert client.delete(f"/api/reviews/{review_id}", headers=stranger).status_code == 404

    updated = client.put(
        f"/api/reviews/{review_id}", json={"rating": 3, "comment": "Bit soft"}, headers=auth_headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["rating"] == 3
    assert updated.json()["data"]["updated_at"] is not None

    assert client.get("/api/reviews/user", headers=auth_headers).json()["data"][0]["comment"] == "Bit soft"

    assert client.delete(f"/api/reviews/{review_id}", headers=auth_headers).status_code == 200
    assert client.get("/api/reviews/user", headers=auth_headers).json()["data"] == []


def test_reviews_for_missing_product(client, session):
    assert client.get("/api/reviews/product/555").status_code == 404
