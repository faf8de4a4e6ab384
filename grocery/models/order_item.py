from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from decimal import Decimal

if TYPE_CHECKING:
    from grocery.models.order import Order


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: int = Field(foreign_key="products.id", index=True)

    product_name: str
    price: Decimal = Field(max_digits=10, decimal_places=2, ge=0)  # unit price at purchase
    quantity: int = Field(ge=1)

    order: Optional["Order"] = Relationship(back_populates="items")
