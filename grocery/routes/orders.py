from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Request, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from grocery.constants.order_status import OrderStatus
from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, get_auth_context, require_admin
from grocery.schemas.orders_schemas import CreateOrderRequest, OrderPaymentRequest, OrderStatusUpdate
from grocery.services import order_service, payment_service
from grocery.services.email_service import EmailClient, get_email_client
from grocery.services.order_email_service import send_order_delivered_email
from grocery.services.payment_gateway import StripeGateway, get_payment_gateway
from grocery.utils.response import api_response

router = APIRouter()


# Webhook (no authentication, verified by signature)

@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    session: Session = Depends(get_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    result = await run_in_threadpool(
        payment_service.handle_webhook, session, gateway, payload, stripe_signature
    )
    return api_response("Webhook processed successfully", result)


@router.post("/create")
def create_order(
    data: CreateOrderRequest,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    order = order_service.create_order(session, auth.user_id, data.items, data.shipping_address)
    return api_response(
        "Order created successfully",
        order_service.serialize_order(order),
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/payment")
def process_payment(
    data: OrderPaymentRequest,
    session: Session = Depends(get_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
    auth: AuthContext = Depends(get_auth_context),
):
    result = payment_service.create_order_payment(session, gateway, auth, data.order_id)
    return api_response("Payment initiated", result)


@router.get("/user")
def get_user_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    orders, pagination = order_service.list_user_orders(session, auth.user_id, page, limit)
    return api_response(
        "Orders retrieved successfully",
        [order_service.serialize_order(o) for o in orders],
        pagination=pagination,
    )


# -------- ADMIN --------

@router.get("")
def get_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    orders, pagination = order_service.list_all_orders(session, page, limit, order_status)
    return api_response(
        "Orders retrieved successfully",
        [order_service.serialize_order(o) for o in orders],
        pagination=pagination,
    )


@router.put("/{order_id}/status")
def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    email_client: EmailClient = Depends(get_email_client),
    auth: AuthContext = Depends(require_admin),
):
    previous = order_service.get_order(session, auth, order_id).status
    order = order_service.update_order_status(session, auth, order_id, data.status)

    if order.status == OrderStatus.delivered.value and previous != order.status:
        background_tasks.add_task(send_order_delivered_email, email_client, order.id)

    return api_response("Order status updated successfully", order_service.serialize_order(order))


# -------- OWNER --------

@router.get("/{order_id}")
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    order = order_service.get_order(session, auth, order_id)
    return api_response("Order retrieved successfully", order_service.serialize_order(order))


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    order = order_service.cancel_order(session, auth, order_id)
    return api_response("Order cancelled successfully", order_service.serialize_order(order))
