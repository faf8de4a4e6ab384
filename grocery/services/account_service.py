"""Profile changes confirmed by email OTP, and password change/reset."""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote

from sqlmodel import Session, or_, select

from grocery.config import settings
from grocery.exceptions import BadRequestError, InternalError, NotFoundError
from grocery.models.profile_change import ProfileChange
from grocery.models.user import User
from grocery.services.email_service import EmailClient
from grocery.utils.hash import hash_password, verify_password
from grocery.utils.template import render_template
from grocery.utils.token import create_access_token, decode_access_token

logger = logging.getLogger(__name__)

RESET_PASSWORD_ACTION = "reset_password"


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


def _get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _ensure_identity_free(session: Session, user_id: int, username: str, email: str) -> None:
    taken = session.exec(
        select(User).where(
            User.id != user_id,
            or_(User.email == email, User.username == username),
        )
    ).first()
    if taken:
        if taken.email == email:
            raise BadRequestError("Email already registered")
        raise BadRequestError("Username already taken")


def _pending_change(session: Session, user_id: int) -> Optional[ProfileChange]:
    return session.exec(select(ProfileChange).where(ProfileChange.user_id == user_id)).first()


# -------- PROFILE --------

def request_profile_change(
    session: Session,
    email_client: EmailClient,
    user_id: int,
    username: Optional[str],
    email: Optional[str],
) -> None:
    """Store the requested change and mail an OTP to the current address.

    A new request replaces any change still waiting for its OTP.
    """
    user = _get_user_or_404(session, user_id)

    new_username = username or user.username
    new_email = email.lower() if email else user.email
    if new_username == user.username and new_email == user.email:
        raise BadRequestError("No profile changes requested")

    _ensure_identity_free(session, user.id, new_username, new_email)

    otp = generate_otp()
    change = _pending_change(session, user.id) or ProfileChange(user_id=user.id)
    change.username = new_username
    change.email = new_email
    change.otp_hash = hash_password(otp)
    change.attempts = 0
    change.expires_at = datetime.utcnow() + timedelta(minutes=settings.profile_otp_expire_minutes)
    change.created_at = datetime.utcnow()
    session.add(change)
    session.flush()

    html = render_template(
        "emails/profile_otp.html",
        user=user,
        otp=otp,
        expire_minutes=settings.profile_otp_expire_minutes,
    )
    if not email_client.send(user.email, "Profile Update Verification", html):
        session.rollback()
        raise InternalError("Could not send verification email")

    session.commit()
    logger.info(f"Profile change requested by user {user.id}, OTP sent")


def verify_profile_change(session: Session, user_id: int, otp: str) -> User:
    user = _get_user_or_404(session, user_id)

    change = _pending_change(session, user.id)
    if not change:
        raise BadRequestError("No pending profile update")

    if change.expires_at < datetime.utcnow():
        session.delete(change)
        session.commit()
        raise BadRequestError("OTP expired")

    if not verify_password(otp, change.otp_hash):
        change.attempts += 1
        if change.attempts >= settings.profile_otp_max_attempts:
            logger.warning(f"Too many OTP attempts for user {user.id}, profile change dropped")
            session.delete(change)
        else:
            session.add(change)
        session.commit()
        raise BadRequestError("Invalid OTP")

    # the identity may have been claimed since the request
    _ensure_identity_free(session, user.id, change.username, change.email)

    user.username = change.username
    user.email = change.email
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.delete(change)
    session.commit()
    session.refresh(user)

    logger.info(f"Profile of user {user.id} updated")
    return user


# -------- PASSWORD --------

def change_password(session: Session, user_id: int, old_password: str, new_password: str) -> None:
    user = _get_user_or_404(session, user_id)

    if not verify_password(old_password, user.password):
        raise BadRequestError("Incorrect old password")

    user.password = hash_password(new_password)
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.commit()
    logger.info(f"Password changed for user {user.id}")


def _password_fingerprint(user: User) -> str:
    # changes with the password, so a used reset token stops working
    return hashlib.sha256(user.password.encode("utf-8")).hexdigest()[:16]


def create_password_reset_token(user: User) -> str:
    return create_access_token(
        {
            "user_id": user.id,
            "action": RESET_PASSWORD_ACTION,
            "pwd": _password_fingerprint(user),
        },
        expires_delta=timedelta(minutes=settings.password_reset_expire_minutes),
    )


def password_reset_email(session: Session, email: str) -> Optional[tuple]:
    """Return ``(to, subject, html)`` for a registered email, else ``None``."""
    user = session.exec(select(User).where(User.email == email.lower())).first()
    if not user or not user.can_login:
        logger.info("Password reset requested for unknown or disabled account")
        return None

    token = create_password_reset_token(user)
    html = render_template(
        "emails/password_reset.html",
        user=user,
        reset_url=f"{settings.frontend_url}/reset-password?token={quote(token)}",
        expire_minutes=settings.password_reset_expire_minutes,
    )
    logger.info(f"Password reset link issued for user {user.id}")
    return user.email, "Password Reset", html


def reset_password(session: Session, token: str, new_password: str) -> None:
    payload = decode_access_token(token)
    if not payload or payload.get("action") != RESET_PASSWORD_ACTION:
        raise BadRequestError("Invalid or expired token")

    user = session.get(User, payload.get("user_id"))
    if not user or payload.get("pwd") != _password_fingerprint(user):
        raise BadRequestError("Invalid or expired token")

    user.password = hash_password(new_password)
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.commit()
    logger.info(f"Password reset for user {user.id}")
