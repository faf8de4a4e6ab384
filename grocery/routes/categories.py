import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session, select

from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, require_admin
from grocery.exceptions import BadRequestError, NotFoundError
from grocery.models.category import Category
from grocery.models.product import Product
from grocery.routes.products import serialize_product
from grocery.schemas.category_schemas import CategoryCreate, CategoryUpdate
from grocery.utils.pagination import paginate
from grocery.utils.response import api_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_category_or_404(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_unique_name(session: Session, name: str, exclude_id: int | None = None) -> None:
    existing = session.exec(select(Category).where(Category.name == name)).first()
    if existing and existing.id != exclude_id:
        raise BadRequestError("Category already exists")


@router.get("")
def list_categories(session: Session = Depends(get_session)):
    categories = session.exec(select(Category).order_by(Category.name)).all()
    return api_response("Categories retrieved successfully", categories)


@router.get("/{category_id}/products")
def list_category_products(
    category_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(get_session),
):
    _get_category_or_404(session, category_id)

    query = (
        select(Product)
        .where(Product.category_id == category_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    products, pagination = paginate(session=session, query=query, page=page, limit=limit)

    return api_response(
        "Products retrieved successfully",
        [serialize_product(p) for p in products],
        pagination=pagination,
    )


# -------- ADMIN --------

@router.post("")
def create_category(
    data: CategoryCreate,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    _ensure_unique_name(session, data.name)

    category = Category(name=data.name, description=data.description)
    session.add(category)
    session.commit()
    session.refresh(category)

    logger.info(f"Created category {category.id} ({category.name})")
    return api_response(
        "Category created successfully",
        category,
        status_code=status.HTTP_201_CREATED,
    )


@router.put("/{category_id}")
def update_category(
    category_id: int,
    data: CategoryUpdate,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    category = _get_category_or_404(session, category_id)

    if data.name and data.name != category.name:
        _ensure_unique_name(session, data.name, exclude_id=category.id)
        category.name = data.name

    if data.description is not None:
        category.description = data.description

    category.updated_at = datetime.utcnow()
    session.add(category)
    session.commit()
    session.refresh(category)

    return api_response("Category updated successfully", category)


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    session: Session = Depends(get_session),
    _: AuthContext = Depends(require_admin),
):
    category = _get_category_or_404(session, category_id)

    has_products = session.exec(
        select(Product).where(Product.category_id == category_id)
    ).first()
    if has_products:
        raise BadRequestError("Cannot delete a category that still has products")

    session.delete(category)
    session.commit()

    logger.info(f"Deleted category {category_id}")
    return api_response("Category deleted successfully")
