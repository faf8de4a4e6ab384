from fastapi import APIRouter, Depends
from sqlmodel import Session

from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, get_auth_context
from grocery.schemas.cart_schemas import CartAddRequest, CartPaymentRequest, CartUpdateRequest
from grocery.services import cart_service, payment_service
from grocery.services.payment_gateway import StripeGateway, get_payment_gateway
from grocery.utils.response import api_response

router = APIRouter()


# View Cart

@router.get("")
def get_cart(
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    cart = cart_service.get_or_create_cart(session, auth.user_id)
    return api_response("Cart retrieved successfully", cart_service.serialize_cart(cart))


# Add to Cart

@router.post("/items")
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    item = cart_service.add_item(session, auth.user_id, data.product_id, data.quantity)
    return api_response(
        "Item added to cart successfully",
        {
            "item": cart_service.serialize_cart_item(item),
            "cart": cart_service.serialize_cart(item.cart),
        },
    )


# Update Cart

@router.put("/items/{cart_item_id}")
def update_cart_item(
    cart_item_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    item = cart_service.update_item(session, auth.user_id, cart_item_id, data.quantity)
    return api_response(
        "Cart item updated successfully",
        {
            "item": cart_service.serialize_cart_item(item),
            "cart": cart_service.serialize_cart(item.cart),
        },
    )


# Remove Cart

@router.delete("/items/{cart_item_id}")
def remove_from_cart(
    cart_item_id: int,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    cart = cart_service.remove_item(session, auth.user_id, cart_item_id)
    return api_response("Item removed from cart successfully", cart_service.serialize_cart(cart))


# Clear Cart

@router.delete("/clear")
def clear_cart(
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    cart = cart_service.clear_cart(session, auth.user_id) or cart_service.get_or_create_cart(session, auth.user_id)
    return api_response("Cart cleared successfully", cart_service.serialize_cart(cart))


# Pay for Cart

@router.post("/payment")
def pay_for_cart(
    data: CartPaymentRequest,
    session: Session = Depends(get_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
    auth: AuthContext = Depends(get_auth_context),
):
    result = payment_service.checkout_cart(
        session,
        gateway,
        auth,
        payment_method_id=data.payment_method_id,
        customer_id=data.customer_id,
        payment_intent_id=data.payment_intent_id,
    )

    if result["status"] == payment_service.SUCCEEDED:
        message = "Payment successful"
    else:
        message = "Additional authentication required"

    return api_response(message, result)
