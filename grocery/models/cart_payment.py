from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class CartPayment(SQLModel, table=True):
    """One row per payment intent applied to a cart; an intent is applied once."""

    __tablename__ = "cart_payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    payment_intent_id: str = Field(index=True, unique=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    cart_id: int = Field(foreign_key="carts.id")
    amount: Decimal = Field(max_digits=10, decimal_places=2, ge=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
