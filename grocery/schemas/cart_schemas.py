from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CartAddRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)


class CartUpdateRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_method_id: Optional[str] = Field(default=None, alias="paymentMethodId")
    customer_id: Optional[str] = Field(default=None, alias="customerId")
    # set when finishing a payment that needed customer action
    payment_intent_id: Optional[str] = Field(default=None, alias="paymentIntentId")
