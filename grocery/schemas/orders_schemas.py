from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class OrderItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[OrderItemRequest] = Field(min_length=1)
    shipping_address: Optional[str] = Field(default=None, alias="shippingAddress")


class OrderStatusUpdate(BaseModel):
    status: str


class OrderPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")
