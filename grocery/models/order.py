from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, Text
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from grocery.constants.order_status import OrderStatus, PaymentStatus
from grocery.models.order_item import OrderItem


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)

    total_amount: Decimal = Field(max_digits=10, decimal_places=2, ge=0)
    status: str = Field(default=OrderStatus.pending.value, index=True)
    tracking_id: str = Field(index=True, unique=True)
    shipping_address: str = Field(sa_column=Column(Text, nullable=False))

    payment_status: str = Field(default=PaymentStatus.pending.value)
    payment_id: Optional[str] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"},
    )
