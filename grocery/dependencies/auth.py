from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from grocery.database import get_session
from grocery.exceptions import ForbiddenError, UnauthorizedError
from grocery.models.user import User
from grocery.utils.token import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

TOKEN_COOKIE = "token"


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, resolved once per request."""

    user_id: int
    is_admin: bool = False


def get_auth_context(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    token = bearer or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise UnauthorizedError("Authentication required")

    payload = decode_access_token(token)
    if payload is None:
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("user_id") or payload.get("sub")
    # single-purpose tokens (password reset) are not sessions
    if user_id is None or payload.get("action"):
        raise UnauthorizedError("Invalid token payload")

    user = session.get(User, int(user_id))
    if user is None:
        raise UnauthorizedError("User not found")

    if not user.can_login:
        raise UnauthorizedError("User account is disabled")

    return AuthContext(user_id=user.id, is_admin=user.is_admin)


def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth
