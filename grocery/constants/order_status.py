from enum import Enum


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"


# forward moves only; an order may skip ahead but never go back
ALLOWED_TRANSITIONS = {
    "pending": ["processing", "shipped", "delivered", "cancelled"],
    "processing": ["shipped", "delivered"],
    "shipped": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

PAYMENT_TRANSITIONS = {
    "pending": ["paid", "failed"],
    "failed": ["pending", "paid"],
    "paid": ["refunded"],
    "refunded": [],
}


def is_valid_order_status(value: str) -> bool:
    return value in OrderStatus._value2member_map_
