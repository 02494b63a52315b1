"""Goal and accountability partner model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 200
MAX_PARTNERS_PER_GOAL = 10
MAX_GOALS_PER_ONBOARDING = 20


class Cadence(str, Enum):
    """How often a goal expects a check-in."""

    DAILY = "daily"
    WEEKLY = "weekly"


class PartnerInput(BaseModel):
    """Contact details for an accountability partner as submitted.

    Blank strings count as missing. An entry with neither contact is
    accepted here and dropped before anything is stored.
    """

    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=r"^[+]?[\d\s()-]+$")

    @field_validator("email", "phone", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_contact(self) -> bool:
        return bool(self.email or self.phone)


class PartnerCreate(BaseModel):
    """Partner ready to persist: at least one contact method."""

    email: Optional[str] = None
    phone: Optional[str] = None

    @model_validator(mode="after")
    def require_contact(self):
        if not self.email and not self.phone:
            raise ValueError("Partner needs an email or a phone number")
        return self


class Partner(BaseModel):
    """Stored accountability partner.

    Loaded as found in the database, so a record with no contact method
    still loads and is reported when a nudge is attempted.
    """

    id: str = Field(alias="_id", serialization_alias="id")
    email: Optional[str] = None
    phone: Optional[str] = None
    goal_id: str
    created_at: datetime

    model_config = {"populate_by_name": True}


class GoalBase(BaseModel):
    """Base goal fields."""

    description: str = Field(
        min_length=DESCRIPTION_MIN_LENGTH,
        max_length=DESCRIPTION_MAX_LENGTH,
    )
    cadence: Optional[Cadence] = None

    @field_validator("cadence", mode="before")
    @classmethod
    def blank_cadence_as_none(cls, value):
        if value == "":
            return None
        return value


class GoalCreate(GoalBase):
    """Goal creation model, partners included."""

    accountability_partners: list[PartnerInput] = Field(
        default_factory=list,
        max_length=MAX_PARTNERS_PER_GOAL,
    )

    def partners_to_store(self) -> list[PartnerCreate]:
        """Partners with at least one contact method."""
        return [
            PartnerCreate(email=p.email, phone=p.phone)
            for p in self.accountability_partners
            if p.has_contact
        ]


class OnboardingRequest(BaseModel):
    """Full goal set submitted at (re-)onboarding."""

    goals: list[GoalCreate] = Field(min_length=1, max_length=MAX_GOALS_PER_ONBOARDING)


class Goal(GoalBase):
    """Full goal model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    streak: int = Field(default=0, ge=0)
    last_check_in_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class GoalWithPartners(Goal):
    """Goal as returned to its owner."""

    accountability_partners: list[Partner] = Field(default_factory=list)
