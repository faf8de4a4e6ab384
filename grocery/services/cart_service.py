import logging
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session, select

from grocery.exceptions import BadRequestError, NotFoundError
from grocery.models.cart import Cart, CartItem
from grocery.services.inventory_service import ensure_available, get_product_or_404

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _line_price(unit_price: Decimal, quantity: int) -> Decimal:
    return (Decimal(unit_price) * quantity).quantize(Decimal("0.01"))


def _validate_quantity(quantity: int) -> None:
    if quantity is None or quantity < 1:
        raise BadRequestError("Quantity must be at least 1")


def find_cart(session: Session, user_id: int) -> Cart | None:
    return session.exec(select(Cart).where(Cart.user_id == user_id)).first()


def get_or_create_cart(session: Session, user_id: int) -> Cart:
    cart = find_cart(session, user_id)
    if cart:
        return cart

    cart = Cart(user_id=user_id, total_amount=ZERO)
    session.add(cart)
    session.commit()
    session.refresh(cart)

    logger.info(f"Created cart {cart.id} for user {user_id}")
    return cart


def recompute_cart_total(session: Session, cart: Cart) -> Decimal:
    """Re-sum every line; never trusts the stored total. Does not commit."""
    session.flush()
    session.expire(cart, ["items"])

    total = sum((Decimal(item.price) for item in cart.items), ZERO)
    cart.total_amount = total
    cart.updated_at = datetime.utcnow()
    session.add(cart)
    return total


def _owned_item(session: Session, user_id: int, cart_item_id: int) -> tuple[Cart, CartItem]:
    cart = find_cart(session, user_id)
    item = session.get(CartItem, cart_item_id)

    if not cart or not item or item.cart_id != cart.id:
        raise NotFoundError("Cart item not found")

    return cart, item


def add_item(session: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    _validate_quantity(quantity)

    product = get_product_or_404(session, product_id)
    ensure_available(product, quantity)

    cart = find_cart(session, user_id)
    existing = None
    if cart:
        existing = session.exec(
            select(CartItem).where(
                CartItem.cart_id == cart.id,
                CartItem.product_id == product_id,
            )
        ).first()

    if existing:
        new_quantity = existing.quantity + quantity
        ensure_available(product, new_quantity)
    else:
        new_quantity = quantity

    # every check passed, mutations start here
    if not cart:
        cart = get_or_create_cart(session, user_id)

    if existing:
        logger.info(
            f"Product {product_id} already in cart {cart.id}, "
            f"quantity {existing.quantity} -> {new_quantity}"
        )
        item = existing
        item.quantity = new_quantity
        item.unit_price = product.price
        item.price = _line_price(product.price, new_quantity)
        item.updated_at = datetime.utcnow()
    else:
        logger.info(f"Adding product {product_id} x{quantity} to cart {cart.id}")
        item = CartItem(
            cart_id=cart.id,
            product_id=product_id,
            quantity=quantity,
            unit_price=product.price,
            price=_line_price(product.price, quantity),
        )

    session.add(item)
    recompute_cart_total(session, cart)
    session.commit()
    session.refresh(item)
    return item


def update_item(session: Session, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
    _validate_quantity(quantity)

    cart, item = _owned_item(session, user_id, cart_item_id)
    product = get_product_or_404(session, item.product_id)
    ensure_available(product, quantity)

    item.quantity = quantity
    item.unit_price = product.price
    item.price = _line_price(product.price, quantity)
    item.updated_at = datetime.utcnow()
    session.add(item)

    recompute_cart_total(session, cart)
    session.commit()
    session.refresh(item)

    logger.info(f"Cart item {cart_item_id} set to quantity {quantity}")
    return item


def remove_item(session: Session, user_id: int, cart_item_id: int) -> Cart:
    cart, item = _owned_item(session, user_id, cart_item_id)

    session.delete(item)
    recompute_cart_total(session, cart)
    session.commit()
    session.refresh(cart)

    logger.info(f"Removed cart item {cart_item_id} from cart {cart.id}")
    return cart


def clear_cart(session: Session, user_id: int, commit: bool = True) -> Cart | None:
    """Empty the user's cart. Idempotent; a missing cart is left missing."""
    cart = find_cart(session, user_id)
    if not cart:
        return None

    for item in list(cart.items):
        session.delete(item)

    cart.total_amount = ZERO
    cart.updated_at = datetime.utcnow()
    session.add(cart)

    if commit:
        session.commit()
        session.refresh(cart)

    logger.info(f"Cleared cart {cart.id} for user {user_id}")
    return cart


def serialize_cart_item(item: CartItem) -> dict:
    product = item.product
    return {
        "id": item.id,
        "cart_id": item.cart_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "price": item.price,
        "productDetails": {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "stock": product.stock,
            "image_url": product.image_url,
            "in_stock": product.in_stock,
        } if product else None,
    }


def serialize_cart(cart: Cart) -> dict:
    return {
        "id": cart.id,
        "user_id": cart.user_id,
        "total_amount": cart.total_amount,
        "cartItems": [serialize_cart_item(item) for item in cart.items],
        "updated_at": cart.updated_at,
    }
