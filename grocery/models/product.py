from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import CheckConstraint
from typing import Optional, TYPE_CHECKING, List
from datetime import datetime
from decimal import Decimal

if TYPE_CHECKING:
    from .category import Category
    from .review import Review


class Product(SQLModel, table=True):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: str

    price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2, ge=0)
    stock: int = Field(default=0, ge=0)

    image_url: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    category_id: int = Field(foreign_key="categories.id", index=True)
    category: Optional["Category"] = Relationship(back_populates="products")

    reviews: List["Review"] = Relationship(back_populates="product")

    @property
    def in_stock(self) -> bool:
        return self.stock > 0
