"""Thin client over the Stripe SDK.

Every call passes the API key explicitly, so several gateways with different
keys can coexist and tests can swap the whole client through
``get_payment_gateway``. Stripe errors are translated into the service error
taxonomy here and nowhere else.
"""
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import stripe

from grocery.config import settings
from grocery.exceptions import BadRequestError, InternalError

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


@dataclass(frozen=True)
class GatewayIntent:
    id: str
    status: str
    amount: int
    client_secret: Optional[str] = None
    customer_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _metadata(obj) -> dict:
    metadata = getattr(obj, "metadata", None) or {}
    if hasattr(metadata, "to_dict"):
        metadata = metadata.to_dict()
    return {key: str(value) for key, value in metadata.items()}


def _intent(obj) -> GatewayIntent:
    return GatewayIntent(
        id=obj.id,
        status=obj.status,
        amount=obj.amount,
        client_secret=getattr(obj, "client_secret", None),
        customer_id=getattr(obj, "customer", None),
        metadata=_metadata(obj),
    )


@contextmanager
def translate_gateway_errors():
    try:
        yield
    except stripe.CardError as e:
        logger.info(f"Card declined: {e.user_message or e}")
        raise BadRequestError(e.user_message or str(e))
    except stripe.InvalidRequestError as e:
        logger.warning(f"Invalid gateway request: {e.user_message or e}")
        raise BadRequestError(e.user_message or str(e))
    except stripe.StripeError as e:
        logger.error(f"Payment gateway failure: {e}")
        raise InternalError("Payment gateway error")


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def ensure_customer(self, customer_id: Optional[str], email: str, user_id: int) -> str:
        """Return a usable customer id, creating the customer when needed."""
        with translate_gateway_errors():
            if customer_id:
                customer = stripe.Customer.retrieve(customer_id, api_key=self.api_key)
                if not getattr(customer, "deleted", False):
                    return customer.id
                logger.info(f"Customer {customer_id} was deleted, creating a new one")

            customer = stripe.Customer.create(
                api_key=self.api_key,
                email=email,
                metadata={"user_id": str(user_id)},
            )
            logger.info(f"Created gateway customer {customer.id} for user {user_id}")
            return customer.id

    def create_and_confirm_intent(
        self,
        amount: int,
        customer_id: str,
        payment_method_id: str,
        metadata: Optional[dict] = None,
    ) -> GatewayIntent:
        """Manual-confirmation intent, confirmed in the same call."""
        with translate_gateway_errors():
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=self.currency,
                customer=customer_id,
                payment_method=payment_method_id,
                payment_method_types=["card"],
                confirmation_method="manual",
                confirm=True,
                metadata=metadata or {},
            )
        return _intent(intent)

    def confirm_intent(self, intent_id: str) -> GatewayIntent:
        """Confirm again after the customer finished 3-D Secure."""
        with translate_gateway_errors():
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
            if intent.status == "requires_confirmation":
                intent = stripe.PaymentIntent.confirm(intent_id, api_key=self.api_key)
        return _intent(intent)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        with translate_gateway_errors():
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        return _intent(intent)

    def create_intent(self, amount: int, metadata: Optional[dict] = None) -> GatewayIntent:
        """Client-confirmed intent; the outcome arrives through the webhook."""
        with translate_gateway_errors():
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=self.currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata or {},
            )
        return _intent(intent)

    def refund(self, intent_id: str) -> str:
        with translate_gateway_errors():
            refund = stripe.Refund.create(api_key=self.api_key, payment_intent=intent_id)
        logger.info(f"Refunded payment intent {intent_id}: {refund.id}")
        return refund.id

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify the signature header and return the decoded event."""
        if not signature:
            raise BadRequestError("Missing stripe signature")

        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                SIGNATURE_TOLERANCE_SECONDS,
            )
            event = json.loads(body)
        except stripe.SignatureVerificationError:
            logger.warning("Webhook signature verification failed")
            raise BadRequestError("Invalid stripe signature")
        except ValueError:
            raise BadRequestError("Invalid webhook payload")

        if not isinstance(event, dict):
            raise BadRequestError("Invalid webhook payload")
        return event


def get_payment_gateway() -> StripeGateway:
    return StripeGateway(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        currency=settings.stripe_currency,
    )
