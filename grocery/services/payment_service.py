"""Payment reconciliation: cart checkout, order payment and webhook events."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from grocery.constants.order_status import OrderStatus, PaymentStatus, PAYMENT_TRANSITIONS
from grocery.dependencies.auth import AuthContext
from grocery.exceptions import BadRequestError, InsufficientStockError, NotFoundError
from grocery.models.cart import Cart
from grocery.models.cart_payment import CartPayment
from grocery.models.order import Order
from grocery.models.user import User
from grocery.services import cart_service, inventory_service
from grocery.services.order_service import get_order
from grocery.services.payment_gateway import GatewayIntent, StripeGateway, to_minor_units

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
NEEDS_CUSTOMER = ("requires_action", "requires_confirmation")


def _checkout_result(intent: GatewayIntent, customer_id: Optional[str], amount: Decimal) -> dict:
    return {
        "paymentIntentId": intent.id,
        "clientSecret": intent.client_secret,
        "customerId": customer_id,
        "status": intent.status,
        "amount": amount,
    }


def _apply_cart_payment(
    session: Session,
    gateway: StripeGateway,
    cart: Cart,
    intent: GatewayIntent,
    amount: Decimal,
) -> None:
    """Record the intent, take stock for every line and empty the cart in one transaction.

    If stock ran out after the charge went through, nothing is applied and
    the charge is refunded. An intent already recorded is never applied twice.
    """
    try:
        session.add(CartPayment(
            payment_intent_id=intent.id,
            user_id=cart.user_id,
            cart_id=cart.id,
            amount=amount,
        ))
        session.flush()

        for item in cart.items:
            inventory_service.reserve_stock(session, item.product_id, item.quantity)

        cart_service.clear_cart(session, cart.user_id, commit=False)
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(f"Payment {intent.id} was already applied, cart {cart.id} left untouched")
        raise BadRequestError("Payment already applied")
    except InsufficientStockError:
        session.rollback()
        logger.warning(f"Stock gone after charge {intent.id} for cart {cart.id}, refunding")
        gateway.refund(intent.id)
        raise
    except Exception:
        session.rollback()
        raise

    logger.info(f"Applied payment {intent.id} to cart {cart.id}")


def _find_applied_payment(session: Session, payment_intent_id: str) -> Optional[CartPayment]:
    return session.exec(
        select(CartPayment).where(CartPayment.payment_intent_id == payment_intent_id)
    ).first()


def _check_resumable_intent(intent: GatewayIntent, user: User, cart: Cart, amount_minor: int) -> None:
    """An intent may only be confirmed by the user and cart that opened it."""
    metadata = intent.metadata or {}
    if metadata.get("user_id") != str(user.id) or metadata.get("cart_id") != str(cart.id):
        logger.warning(f"User {user.id} tried to confirm foreign payment {intent.id}")
        raise BadRequestError("Payment does not belong to this cart")

    # succeeded but never recorded: refunded or applied elsewhere
    if intent.status == SUCCEEDED:
        logger.warning(f"Payment {intent.id} already completed without being applied to cart {cart.id}")
        raise BadRequestError("Payment can no longer be used")

    if intent.amount != amount_minor:
        raise BadRequestError("Cart changed since the payment was started")


def checkout_cart(
    session: Session,
    gateway: StripeGateway,
    auth: AuthContext,
    payment_method_id: Optional[str],
    customer_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
) -> dict:
    """Charge the caller's cart.

    Without ``payment_intent_id`` a new intent is created and confirmed. With
    it, the caller's own pending intent is confirmed again, which is how a
    client finishes after 3-D Secure. Replaying an intent that was already
    applied returns its result without touching stock or cart.
    """
    user = session.get(User, auth.user_id)
    if not user:
        raise NotFoundError("User not found")

    cart = cart_service.get_or_create_cart(session, auth.user_id)

    if payment_intent_id:
        applied = _find_applied_payment(session, payment_intent_id)
        if applied:
            if applied.user_id != user.id:
                logger.warning(f"User {user.id} replayed payment {payment_intent_id} of user {applied.user_id}")
                raise BadRequestError("Payment does not belong to this cart")
            intent = gateway.retrieve_intent(payment_intent_id)
            logger.info(f"Payment {payment_intent_id} already applied to cart {applied.cart_id}")
            return _checkout_result(intent, intent.customer_id, applied.amount)

    if not payment_intent_id and not payment_method_id:
        raise BadRequestError("Payment method is required")

    amount = cart_service.recompute_cart_total(session, cart)
    session.commit()

    if amount <= 0:
        raise BadRequestError("Cart is empty")

    # second check closer to charge time; the atomic update still decides
    for item in cart.items:
        inventory_service.ensure_available(item.product, item.quantity)

    amount_minor = to_minor_units(amount)

    if payment_intent_id:
        _check_resumable_intent(gateway.retrieve_intent(payment_intent_id), user, cart, amount_minor)

    resolved_customer = gateway.ensure_customer(
        customer_id or user.stripe_customer_id,
        user.email,
        user.id,
    )
    if resolved_customer != user.stripe_customer_id:
        user.stripe_customer_id = resolved_customer
        user.updated_at = datetime.utcnow()
        session.add(user)
        session.commit()

    if payment_intent_id:
        intent = gateway.confirm_intent(payment_intent_id)
    else:
        intent = gateway.create_and_confirm_intent(
            amount=amount_minor,
            customer_id=resolved_customer,
            payment_method_id=payment_method_id,
            metadata={"user_id": str(user.id), "cart_id": str(cart.id)},
        )

    logger.info(f"Cart {cart.id} payment intent {intent.id} is {intent.status}")

    if intent.status == SUCCEEDED:
        _apply_cart_payment(session, gateway, cart, intent, amount)
    elif intent.status not in NEEDS_CUSTOMER:
        raise BadRequestError(f"Unexpected payment status: {intent.status}")

    return _checkout_result(intent, resolved_customer, amount)


def create_order_payment(session: Session, gateway: StripeGateway, auth: AuthContext, order_id: int) -> dict:
    """Open an intent for an order; the webhook reports the outcome."""
    order = get_order(session, auth, order_id)

    if order.status == OrderStatus.cancelled.value:
        raise BadRequestError("Cancelled orders cannot be paid")

    payable = order.payment_status == PaymentStatus.pending.value or \
        PaymentStatus.pending.value in PAYMENT_TRANSITIONS.get(order.payment_status, [])
    if not payable:
        raise BadRequestError(f"Order payment is already {order.payment_status}")

    intent = gateway.create_intent(
        amount=to_minor_units(order.total_amount),
        metadata={"order_id": str(order.id)},
    )

    order.payment_status = PaymentStatus.pending.value
    order.updated_at = datetime.utcnow()
    session.add(order)
    session.commit()

    logger.info(f"Payment intent {intent.id} opened for order {order.id}")
    return {
        "clientSecret": intent.client_secret,
        "paymentIntentId": intent.id,
        "amount": order.total_amount,
        "orderId": order.id,
    }


def _order_from_intent(session: Session, intent: dict) -> Optional[Order]:
    metadata = intent.get("metadata")
    order_id = metadata.get("order_id") if isinstance(metadata, dict) else None
    if not order_id:
        return None
    try:
        return session.get(Order, int(order_id))
    except (TypeError, ValueError):
        logger.warning(f"Webhook carried malformed order id {order_id!r}")
        return None


def _mark_paid(session: Session, gateway: StripeGateway, order: Order, intent: dict) -> None:
    if order.payment_status in (PaymentStatus.paid.value, PaymentStatus.refunded.value):
        logger.info(f"Order {order.id} already {order.payment_status}, ignoring duplicate event")
        return

    order.payment_id = intent.get("id")

    if order.status == OrderStatus.cancelled.value:
        # paid after cancellation: the money goes back
        logger.warning(f"Order {order.id} paid by {order.payment_id} after cancellation, refunding")
        gateway.refund(order.payment_id)
        order.payment_status = PaymentStatus.refunded.value
    else:
        order.payment_status = PaymentStatus.paid.value
        if order.status == OrderStatus.pending.value:
            order.status = OrderStatus.processing.value
        else:
            logger.warning(f"Order {order.id} paid while {order.status}")

    order.updated_at = datetime.utcnow()
    session.add(order)
    session.commit()
    logger.info(f"Order {order.id} payment {order.payment_id} is {order.payment_status}")


def _mark_failed(session: Session, gateway: StripeGateway, order: Order, intent: dict) -> None:
    if order.payment_status != PaymentStatus.pending.value:
        return

    order.payment_status = PaymentStatus.failed.value
    order.updated_at = datetime.utcnow()
    session.add(order)
    session.commit()
    logger.info(f"Order {order.id} payment failed ({intent.get('id')})")


EVENT_HANDLERS = {
    "payment_intent.succeeded": _mark_paid,
    "payment_intent.payment_failed": _mark_failed,
}


def handle_webhook(session: Session, gateway: StripeGateway, payload: bytes, signature: Optional[str]) -> dict:
    event = gateway.construct_event(payload, signature)
    event_type = event.get("type")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Ignoring webhook event {event_type}")
        return {"received": True}

    data = event.get("data")
    intent = data.get("object") if isinstance(data, dict) else None
    if not isinstance(intent, dict):
        logger.warning(f"Webhook {event_type} carried no payment intent object")
        raise BadRequestError("Invalid webhook payload")

    order = _order_from_intent(session, intent)
    if order is None:
        logger.warning(f"Webhook {event_type} for unknown order, intent {intent.get('id')}")
        return {"received": True}

    handler(session, gateway, order, intent)
    return {"received": True}
