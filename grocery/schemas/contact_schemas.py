from pydantic import BaseModel, EmailStr, Field

from grocery.constants.contact_status import ContactStatus


class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)


class ContactStatusUpdate(BaseModel):
    status: ContactStatus
