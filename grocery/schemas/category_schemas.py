from sqlmodel import SQLModel
from typing import Optional


class CategoryCreate(SQLModel):
    name: str
    description: Optional[str] = None


class CategoryUpdate(SQLModel):
    name: Optional[str] = None
    description: Optional[str] = None
