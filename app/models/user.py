"""User model definitions."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    """Base user fields."""

    email: EmailStr
    name: str


class UserCreate(UserBase):
    """Registration payload."""

    password: str


class User(UserBase):
    """User as exposed by the API."""

    id: str = Field(alias="_id", serialization_alias="id")
    onboarded: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class OnboardingStatus(BaseModel):
    """Whether the user has submitted a goal set."""

    onboarded: bool
