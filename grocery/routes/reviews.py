import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlmodel import Session, select

from grocery.constants.order_status import OrderStatus
from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, get_auth_context
from grocery.exceptions import BadRequestError, ForbiddenError, NotFoundError
from grocery.models.order import Order
from grocery.models.order_item import OrderItem
from grocery.models.review import Review
from grocery.models.user import User
from grocery.schemas.review_schemas import ReviewCreate, ReviewUpdate
from grocery.services.inventory_service import get_product_or_404
from grocery.utils.response import api_response

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_review(review: Review, username: str | None = None) -> dict:
    return {
        "id": review.id,
        "product_id": review.product_id,
        "user_id": review.user_id,
        "username": username,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }


def _has_delivered_purchase(session: Session, user_id: int, product_id: int) -> bool:
    purchase = session.exec(
        select(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.user_id == user_id,
            Order.status == OrderStatus.delivered.value,
            OrderItem.product_id == product_id,
        )
    ).first()
    return purchase is not None


def _own_review(session: Session, auth: AuthContext, review_id: int) -> Review:
    review = session.get(Review, review_id)
    if not review or review.user_id != auth.user_id:
        raise NotFoundError("Review not found")
    return review


# ---------------------------------------------------------
# CREATE A REVIEW
# ---------------------------------------------------------

@router.post("")
def create_review(
    data: ReviewCreate,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    get_product_or_404(session, data.product_id)

    if not _has_delivered_purchase(session, auth.user_id, data.product_id):
        raise ForbiddenError("You can only review products from delivered orders")

    existing = session.exec(
        select(Review).where(
            Review.user_id == auth.user_id,
            Review.product_id == data.product_id,
        )
    ).first()
    if existing:
        raise BadRequestError("You have already reviewed this product")

    review = Review(
        user_id=auth.user_id,
        product_id=data.product_id,
        rating=data.rating,
        comment=data.comment,
    )

    session.add(review)
    session.commit()
    session.refresh(review)

    logger.info(f"User {auth.user_id} reviewed product {data.product_id}")
    return api_response(
        "Review added successfully",
        serialize_review(review),
        status_code=status.HTTP_201_CREATED,
    )


# ---------------------------------------------------------
# UPDATE / DELETE (author only)
# ---------------------------------------------------------

@router.put("/{review_id}")
def update_review(
    review_id: int,
    data: ReviewUpdate,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    review = _own_review(session, auth, review_id)

    if data.rating is not None:
        review.rating = data.rating

    if data.comment is not None:
        review.comment = data.comment

    review.updated_at = datetime.utcnow()

    session.add(review)
    session.commit()
    session.refresh(review)

    return api_response("Review updated successfully", serialize_review(review))


@router.delete("/{review_id}")
def delete_review(
    review_id: int,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    review = _own_review(session, auth, review_id)

    session.delete(review)
    session.commit()

    return api_response("Review deleted successfully")


# ---------------------------------------------------------
# LISTINGS
# ---------------------------------------------------------

@router.get("/product/{product_id}")
def get_product_reviews(product_id: int, session: Session = Depends(get_session)):
    get_product_or_404(session, product_id)

    rows = session.exec(
        select(Review, User.username)
        .join(User, User.id == Review.user_id)
        .where(Review.product_id == product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    ).all()

    average = session.exec(
        select(func.avg(Review.rating)).where(Review.product_id == product_id)
    ).one()

    return api_response(
        "Reviews retrieved successfully",
        {
            "productId": product_id,
            "averageRating": round(float(average), 2) if average is not None else None,
            "totalReviews": len(rows),
            "reviews": [serialize_review(review, username) for review, username in rows],
        },
    )


@router.get("/user")
def get_my_reviews(
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    reviews = session.exec(
        select(Review)
        .where(Review.user_id == auth.user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    ).all()

    return api_response(
        "Reviews retrieved successfully",
        [serialize_review(r) for r in reviews],
    )
