import requests

from grocery.schemas.orders_schemas import OrderItemRequest
from grocery.services import email_service
from grocery.services.email_service import EmailClient, is_valid_email
from grocery.services.order_service import create_order
from grocery.utils.template import render_template


class _Response:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


def _client(api_key="brevo-key"):
    return EmailClient(api_key=api_key, sender_email="shop@grocery.test", sender_name="Grocery")


def test_send_posts_to_brevo(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append({"url": url, "json": json, "headers": headers})
        return _Response(201)

    monkeypatch.setattr(email_service.requests, "post", fake_post)

    assert _client().send(["a@example.com", "broken"], "Hello", "<p>Hi</p>") is True
    assert calls[0]["url"] == email_service.BREVO_API_URL
    assert calls[0]["json"]["to"] == [{"email": "a@example.com"}]
    assert calls[0]["json"]["sender"] == {"email": "shop@grocery.test", "name": "Grocery"}
    assert calls[0]["headers"]["api-key"] == "brevo-key"


def test_send_reports_failures(monkeypatch):
    monkeypatch.setattr(email_service.requests, "post", lambda *a, **kw: _Response(500, "boom"))
    assert _client().send("a@example.com", "Hello", "<p>Hi</p>") is False

    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(email_service.requests, "post", unreachable)
    assert _client().send("a@example.com", "Hello", "<p>Hi</p>") is False


def test_send_is_skipped_without_key_or_recipients(monkeypatch):
    def must_not_post(*args, **kwargs):
        raise AssertionError("unexpected request")

    monkeypatch.setattr(email_service.requests, "post", must_not_post)

    assert _client(api_key="").send("a@example.com", "Hello", "<p>Hi</p>") is False
    assert _client().send("not-an-email", "Hello", "<p>Hi</p>") is False


def test_is_valid_email():
    assert is_valid_email("a@example.com")
    assert is_valid_email(["a@example.com", "b@example.org"])
    assert not is_valid_email("")
    assert not is_valid_email(["a@example.com", "nope"])


def test_delivered_template_renders_both_audiences(session, user, make_product):
    product = make_product("Apple", "2.99", 10)
    order = create_order(session, user.id, [OrderItemRequest(product_id=product.id, quantity=2)], "1 Elm St")

    customer = render_template("emails/order_delivered.html", order=order, user=user, audience="customer")
    admin = render_template("emails/order_delivered.html", order=order, user=user, audience="admin")

    assert "Hi alice" in customer
    assert order.tracking_id in customer
    assert "5.98" in customer
    assert "alice@example.com" in admin
