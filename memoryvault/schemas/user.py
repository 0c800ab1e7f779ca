"""User schemas."""

from datetime import datetime

from pydantic import EmailStr, Field

from memoryvault.schemas.base import BaseSchema


class UserCreate(BaseSchema):
    """Schema for onboarding the single user of this installation."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None


class UserRead(BaseSchema):
    """Schema for reading user data."""

    id: int
    name: str
    email: str | None = None
    created_at: datetime
