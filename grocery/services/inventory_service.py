import logging

from sqlalchemy import update
from sqlmodel import Session

from grocery.exceptions import InsufficientStockError, NotFoundError
from grocery.models.product import Product

logger = logging.getLogger(__name__)


def get_product_or_404(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def ensure_available(product: Product, quantity: int) -> None:
    """Read-side check, does not hold anything for the caller."""
    if quantity > product.stock:
        raise InsufficientStockError(f"Insufficient stock for product {product.name}")


def reserve_stock(session: Session, product_id: int, quantity: int) -> None:
    """Decrement stock in a single conditional UPDATE.

    The row is only touched while ``stock >= quantity`` still holds in the
    database, so two callers racing for the last units cannot both succeed.
    Runs inside the caller's transaction and does not commit.
    """
    result = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        product = session.get(Product, product_id)
        name = product.name if product else product_id
        logger.warning(f"Stock reservation failed: product {product_id}, qty {quantity}")
        raise InsufficientStockError(f"Insufficient stock for product {name}")

    logger.info(f"Reserved {quantity} unit(s) of product {product_id}")


def restock(session: Session, product_id: int, quantity: int) -> None:
    """Give units back, e.g. when an order is cancelled. Does not commit."""
    session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    logger.info(f"Restocked {quantity} unit(s) of product {product_id}")
