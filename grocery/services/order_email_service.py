import logging

from sqlmodel import Session

from grocery.database import engine
from grocery.models.order import Order
from grocery.models.user import User
from grocery.services.email_service import EmailClient, admin_recipients
from grocery.utils.template import render_template

logger = logging.getLogger(__name__)


def send_order_delivered_email(email_client: EmailClient, order_id: int):
    """
    Notify the customer and the store admin that an order was delivered.
    Runs after the response is sent, with its own session, and NEVER
    fails the status update.
    """
    try:
        with Session(engine) as session:
            order = session.get(Order, order_id)
            if not order:
                logger.warning(f"Order {order_id} vanished before delivery email")
                return

            user = session.get(User, order.user_id)

            if user:
                html = render_template(
                    "emails/order_delivered.html",
                    order=order,
                    user=user,
                    audience="customer",
                )
                email_client.send(
                    to=user.email,
                    subject=f"Your order {order.tracking_id} has been delivered",
                    html=html,
                )

            admin_email = admin_recipients()
            if admin_email:
                html = render_template(
                    "emails/order_delivered.html",
                    order=order,
                    user=user,
                    audience="admin",
                )
                email_client.send(
                    to=admin_email,
                    subject="Order Delivered",
                    html=html,
                )
    except Exception:
        logger.exception(f"Delivered notification failed for order {order_id}")
