import dataclasses
import hashlib
import hmac
import json
import os
import time
from decimal import Decimal

os.environ["ENV"] = "test"
os.environ["DATABASE_URI"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["BREVO_API_KEY"] = ""
os.environ["ADMIN_EMAIL"] = "admin@grocery.test"

import pytest
import stripe
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session

from grocery import models  # noqa: F401
from grocery.database import engine, get_session
from grocery.main import app
from grocery.models.category import Category
from grocery.models.product import Product
from grocery.models.user import User
from grocery.services.email_service import EmailClient, get_email_client
from grocery.services.payment_gateway import (
    GatewayIntent,
    StripeGateway,
    get_payment_gateway,
    translate_gateway_errors,
)
from grocery.utils.hash import hash_password
from grocery.utils.token import create_access_token

WEBHOOK_SECRET = "whsec_test"
DECLINED_CARD = "pm_card_chargeDeclined"


class FakeGateway(StripeGateway):
    """In-process gateway. Signature checks stay real, network calls do not."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET, currency="usd")
        self.next_status = "succeeded"
        self.intents = {}
        self.refunds = []
        self.customers = []
        self.created = []
        self.on_charge = None

    def _store(self, amount, status, customer_id=None, metadata=None):
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = GatewayIntent(
            id=intent_id,
            status=status,
            amount=amount,
            client_secret=f"{intent_id}_secret",
            customer_id=customer_id,
            metadata=dict(metadata or {}),
        )
        self.intents[intent_id] = intent
        self.created.append((intent_id, amount, metadata or {}))
        return intent

    def ensure_customer(self, customer_id, email, user_id):
        if customer_id:
            return customer_id
        customer_id = f"cus_test_{user_id}"
        self.customers.append(customer_id)
        return customer_id

    def create_and_confirm_intent(self, amount, customer_id, payment_method_id, metadata=None):
        if payment_method_id == DECLINED_CARD:
            with translate_gateway_errors():
                raise stripe.CardError("Your card was declined.", None, "card_declined")
        if self.on_charge:
            self.on_charge()
        return self._store(amount, self.next_status, customer_id, metadata)

    def confirm_intent(self, intent_id):
        intent = dataclasses.replace(self.intents[intent_id], status=self.next_status)
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id):
        return self.intents[intent_id]

    def create_intent(self, amount, metadata=None):
        return self._store(amount, "requires_payment_method", metadata=metadata)

    def refund(self, intent_id):
        self.refunds.append(intent_id)
        return f"re_{intent_id}"


class FakeEmailClient(EmailClient):
    def __init__(self):
        super().__init__(api_key="", sender_email="no-reply@grocery.test", sender_name="Grocery")
        self.sent = []

    def send(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def webhook_event(event_type: str, intent_id: str, order_id=None) -> str:
    metadata = {"order_id": str(order_id)} if order_id is not None else {}
    return json.dumps({
        "id": "evt_test_1",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", "metadata": metadata}},
    })


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="gateway")
def gateway_fixture():
    return FakeGateway()


@pytest.fixture(name="email_client")
def email_client_fixture():
    return FakeEmailClient()


@pytest.fixture(name="client")
def client_fixture(session, gateway, email_client):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_client] = lambda: email_client

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def make_user(session, username="alice", email="alice@example.com", role="user", password="password123"):
    user = User(username=username, email=email, password=hash_password(password), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'user_id': user.id})}"}


@pytest.fixture(name="user")
def user_fixture(session):
    return make_user(session)


@pytest.fixture(name="admin")
def admin_fixture(session):
    return make_user(session, username="admin", email="admin@example.com", role="admin")


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(user):
    return bearer(user)


@pytest.fixture(name="admin_headers")
def admin_headers_fixture(admin):
    return bearer(admin)


@pytest.fixture(name="category")
def category_fixture(session):
    category = Category(name="Produce", description="Fresh fruit and vegetables")
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@pytest.fixture(name="make_product")
def make_product_fixture(session, category):
    def _make(name="Apple", price="2.99", stock=10):
        product = Product(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            category_id=category.id,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture(name="product")
def product_fixture(make_product):
    return make_product()


def stock_of(session, product_id) -> int:
    session.expire_all()
    return session.get(Product, product_id).stock
