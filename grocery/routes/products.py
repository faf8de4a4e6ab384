import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session, or_, select

from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, require_admin
from grocery.exceptions import BadRequestError
from grocery.models.cart import CartItem
from grocery.models.category import Category
from grocery.models.order_item import OrderItem
from grocery.models.product import Product
from grocery.schemas.product_schemas import ProductCreate, ProductUpdate
from grocery.services import cart_service, inventory_service
from grocery.utils.pagination import paginate
from grocery.utils.response import api_response

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "created_at": Product.created_at,
    "price": Product.price,
    "name": Product.name,
}


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "stock": product.stock,
        "in_stock": product.in_stock,
        "image_url": product.image_url,
        "category_id": product.category_id,
        "category": product.category.name if product.category else None,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def _ensure_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise BadRequestError(f"Category {category_id} does not exist")
    return category


# ---------- LIST / SEARCH ----------

@router.get("")
def list_products(
    category: Optional[int] = None,
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = None,
    sort: str = "created_at",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
):
    if sort not in SORT_COLUMNS:
        raise BadRequestError(f"Invalid sort field: {sort}")

    query = select(Product)

    if category is not None:
        query = query.where(Product.category_id == category)

    if min_price is not None:
        query = query.where(Product.price >= min_price)

    if max_price is not None:
        query = query.where(Product.price <= max_price)

    if search:
        like = f"%{search}%"
        query = query.where(
            or_(Product.name.ilike(like), Product.description.ilike(like))
        )

    query = query.order_by(SORT_COLUMNS[sort].desc(), Product.id.desc())

    products, pagination = paginate(session=session, query=query, page=page, limit=limit)

    return api_response(
        "Products retrieved successfully",
        [serialize_product(p) for p in products],
        pagination=pagination,
    )


@router.get("/{product_id}")
def get_product(product_id: int, session: Session = Depends(get_session)):
    product = inventory_service.get_product_or_404(session, product_id)
    return api_response("Product retrieved successfully", serialize_product(product))


# ---------- ADMIN ----------

@router.post("")
def create_product(
    data: ProductCreate,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    _ensure_category(session, data.category_id)

    product = Product(**data.model_dump())
    session.add(product)
    session.commit()
    session.refresh(product)

    logger.info(f"Created product {product.id} ({product.name})")
    return api_response(
        "Product created successfully",
        serialize_product(product),
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{product_id}")
def update_product(
    product_id: int,
    data: ProductUpdate,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    product = inventory_service.get_product_or_404(session, product_id)

    updates = data.model_dump(exclude_unset=True)
    if updates.get("category_id") is not None:
        _ensure_category(session, updates["category_id"])

    for field, value in updates.items():
        if value is not None:
            setattr(product, field, value)

    product.updated_at = datetime.utcnow()
    session.add(product)
    session.commit()
    session.refresh(product)

    logger.info(f"Updated product {product.id}")
    return api_response("Product updated successfully", serialize_product(product))


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    product = inventory_service.get_product_or_404(session, product_id)

    ordered = session.exec(
        select(OrderItem).where(OrderItem.product_id == product_id)
    ).first()
    if ordered:
        raise BadRequestError("Product has existing orders and cannot be deleted")

    cart_items = session.exec(
        select(CartItem).where(CartItem.product_id == product_id)
    ).all()
    carts = {item.cart_id: item.cart for item in cart_items}

    for item in cart_items:
        session.delete(item)
    for review in product.reviews:
        session.delete(review)
    session.delete(product)

    for cart in carts.values():
        cart_service.recompute_cart_total(session, cart)
    session.commit()

    logger.info(f"Deleted product {product_id}")
    return api_response("Product deleted successfully")
