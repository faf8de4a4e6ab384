import logging
import secrets
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from grocery.constants.order_status import (
    ALLOWED_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    is_valid_order_status,
)
from grocery.dependencies.auth import AuthContext
from grocery.exceptions import BadRequestError, InternalError, NotFoundError
from grocery.models.order import Order
from grocery.models.order_item import OrderItem
from grocery.services import inventory_service
from grocery.utils.pagination import paginate

logger = logging.getLogger(__name__)


def generate_tracking_id() -> str:
    return secrets.token_hex(8)


def _merge_lines(items: Iterable) -> "OrderedDict[int, int]":
    """Collapse repeated products so stock is checked against the real demand."""
    merged: "OrderedDict[int, int]" = OrderedDict()
    for line in items:
        if line.quantity < 1:
            raise BadRequestError("Quantity must be at least 1")
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


def create_order(session: Session, user_id: int, items: list, shipping_address: Optional[str]) -> Order:
    """Turn requested lines into an order, decrementing stock.

    Validation runs for every line before anything is written. Order, order
    items and stock changes then commit together or not at all.
    """
    if not shipping_address or not shipping_address.strip():
        raise BadRequestError("Shipping address is required")

    if not items:
        raise BadRequestError("Order must contain at least one item")

    lines = _merge_lines(items)

    products = {}
    total_amount = Decimal("0.00")
    for product_id, quantity in lines.items():
        product = inventory_service.get_product_or_404(session, product_id)
        inventory_service.ensure_available(product, quantity)
        products[product_id] = product
        total_amount += Decimal(product.price) * quantity

    order = Order(
        user_id=user_id,
        total_amount=total_amount,
        status=OrderStatus.pending.value,
        tracking_id=generate_tracking_id(),
        shipping_address=shipping_address.strip(),
        payment_status=PaymentStatus.pending.value,
    )

    try:
        session.add(order)
        session.flush()

        for product_id, quantity in lines.items():
            product = products[product_id]
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    product_name=product.name,
                    price=product.price,
                    quantity=quantity,
                )
            )
            inventory_service.reserve_stock(session, product_id, quantity)

        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.error(f"Order insert rejected for user {user_id}: {e}")
        raise InternalError("Could not create order, please retry")
    except Exception:
        session.rollback()
        raise

    session.refresh(order)
    logger.info(
        f"Order {order.id} created for user {user_id}, "
        f"total {order.total_amount}, tracking {order.tracking_id}"
    )
    return order


def get_order(session: Session, auth: AuthContext, order_id: int) -> Order:
    """Owners see their own orders, admins see any. Others get NotFound."""
    order = session.get(Order, order_id)
    if not order or (order.user_id != auth.user_id and not auth.is_admin):
        raise NotFoundError("Order not found")
    return order


def list_user_orders(session: Session, user_id: int, page: int = 1, limit: int = 10):
    query = (
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return paginate(session=session, query=query, page=page, limit=limit)


def list_all_orders(session: Session, page: int = 1, limit: int = 10, status: Optional[str] = None):
    query = select(Order)

    # unknown filters are ignored rather than rejected
    if status and is_valid_order_status(status):
        query = query.where(Order.status == status)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(session=session, query=query, page=page, limit=limit)


def cancel_order(session: Session, auth: AuthContext, order_id: int) -> Order:
    order = get_order(session, auth, order_id)

    if order.status != OrderStatus.pending.value:
        raise BadRequestError("Only pending orders can be cancelled")

    try:
        for item in order.items:
            inventory_service.restock(session, item.product_id, item.quantity)

        order.status = OrderStatus.cancelled.value
        order.updated_at = datetime.utcnow()
        session.add(order)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(order)
    logger.info(f"Order {order.id} cancelled, {len(order.items)} line(s) restocked")
    return order


def update_order_status(session: Session, auth: AuthContext, order_id: int, new_status: str) -> Order:
    if not new_status or not is_valid_order_status(new_status):
        raise BadRequestError("Invalid order status")

    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    if new_status == order.status:
        return order

    if new_status not in ALLOWED_TRANSITIONS.get(order.status, []):
        raise BadRequestError(f"Cannot change order status from {order.status} to {new_status}")

    if new_status == OrderStatus.cancelled.value:
        return cancel_order(session, auth, order_id)

    order.status = new_status
    order.updated_at = datetime.utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)

    logger.info(f"Order {order.id} moved to {new_status}")
    return order


def serialize_order(order: Order) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_amount": order.total_amount,
        "status": order.status,
        "tracking_id": order.tracking_id,
        "shipping_address": order.shipping_address,
        "payment_status": order.payment_status,
        "payment_id": order.payment_id,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "orderDetails": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price": item.price,
                "total": Decimal(item.price) * item.quantity,
            }
            for item in order.items
        ],
    }
