import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session, or_, select

from grocery.config import settings
from grocery.database import get_session
from grocery.dependencies.auth import TOKEN_COOKIE
from grocery.exceptions import BadRequestError, UnauthorizedError
from grocery.models.user import User
from grocery.schemas.user_schemas import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    Token,
    UserLogin,
    UserRegister,
)
from grocery.services import account_service
from grocery.services.email_service import EmailClient, get_email_client
from grocery.utils.hash import hash_password, verify_password
from grocery.utils.response import api_response
from grocery.utils.token import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "is_admin": user.is_admin,
        "can_login": user.can_login,
        "created_at": user.created_at,
    }


# -------- AUTH ROUTES --------

@router.post("/register")
def register_user(payload: UserRegister, session: Session = Depends(get_session)):
    email = payload.email.lower()
    existing_user = session.exec(
        select(User).where(or_(User.email == email, User.username == payload.username))
    ).first()
    if existing_user:
        if existing_user.email == email:
            raise BadRequestError("Email already registered")
        raise BadRequestError("Username already taken")

    user = User(
        username=payload.username,
        email=email,
        password=hash_password(payload.password),
    )

    session.add(user)
    session.commit()
    session.refresh(user)

    logger.info(f"Registered user {user.id}")
    return api_response(
        "Registration successful",
        serialize_user(user),
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
def login(payload: UserLogin, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == payload.email.lower())).first()

    if not user or not verify_password(payload.password, user.password):
        raise UnauthorizedError("Invalid email or password")

    if not user.can_login:
        raise UnauthorizedError("User account is disabled")

    token = Token(access_token=create_access_token({"user_id": user.id}))

    response = api_response(
        "Login successful",
        {**token.model_dump(by_alias=True), "user": serialize_user(user)},
    )
    response.set_cookie(
        TOKEN_COOKIE,
        token.access_token,
        httponly=True,
        samesite="lax",
        secure=settings.env != "local",
        max_age=settings.access_token_expire_minutes * 60,
    )
    return response


@router.post("/logout")
def logout():
    response = api_response("Logout successful")
    response.delete_cookie(TOKEN_COOKIE)
    return response


# -------- PASSWORD RESET --------

@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    email_client: EmailClient = Depends(get_email_client),
):
    # same answer whether or not the email is registered
    reset_email = account_service.password_reset_email(session, payload.email)
    if reset_email:
        background_tasks.add_task(email_client.send, *reset_email)
    return api_response("Password reset email sent")


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, session: Session = Depends(get_session)):
    account_service.reset_password(session, payload.token, payload.password)
    return api_response("Password updated successfully")
