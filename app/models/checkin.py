"""Check-in model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class CheckInOutcome(str, Enum):
    """What a check-in did to the streak."""

    ALREADY_DONE = "already_done"
    INCREMENTED = "incremented"
    RESET = "reset"


class CheckInResult(BaseModel):
    """Streak state after applying a check-in."""

    outcome: CheckInOutcome
    streak: int
    last_check_in_at: datetime

    @property
    def changed(self) -> bool:
        """Whether the goal record has to be written."""
        return self.outcome != CheckInOutcome.ALREADY_DONE


class CheckInRequest(BaseModel):
    """Check-in request body."""

    goal_id: str


class CheckInResponse(BaseModel):
    """Check-in response returned to the goal owner."""

    success: bool = True
    outcome: CheckInOutcome
    streak: int
    last_check_in_at: datetime
    message: Optional[str] = None
