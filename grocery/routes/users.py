from fastapi import APIRouter, Depends
from sqlmodel import Session

from grocery.database import get_session
from grocery.dependencies.auth import AuthContext, get_auth_context
from grocery.models.user import User
from grocery.routes.auth import serialize_user
from grocery.schemas.user_schemas import PasswordChange, ProfileUpdate, ProfileVerify
from grocery.services import account_service
from grocery.services.email_service import EmailClient, get_email_client
from grocery.utils.response import api_response

router = APIRouter()


# -------- USER PROFILE --------

@router.get("/me")
def get_my_profile(
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    user = session.get(User, auth.user_id)
    return api_response("Profile retrieved successfully", serialize_user(user))


@router.put("/me")
def update_my_profile(
    data: ProfileUpdate,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
    email_client: EmailClient = Depends(get_email_client),
):
    account_service.request_profile_change(
        session, email_client, auth.user_id, data.username, data.email
    )
    return api_response("OTP sent to your email")


@router.post("/me/verify")
def verify_my_profile_update(
    data: ProfileVerify,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    user = account_service.verify_profile_change(session, auth.user_id, data.otp)
    return api_response("Profile updated", serialize_user(user))


@router.put("/me/password")
def change_my_password(
    data: PasswordChange,
    session: Session = Depends(get_session),
    auth: AuthContext = Depends(get_auth_context),
):
    account_service.change_password(session, auth.user_id, data.old_password, data.new_password)
    return api_response("Password updated")
