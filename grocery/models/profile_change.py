from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class ProfileChange(SQLModel, table=True):
    """Username/email change waiting for the OTP sent to the current address."""

    __tablename__ = "profile_changes"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    username: str
    email: str

    otp_hash: str
    attempts: int = Field(default=0)
    expires_at: datetime

    created_at: datetime = Field(default_factory=datetime.utcnow)
