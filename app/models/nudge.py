"""Nudge sweep model definitions."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NudgeStatus(str, Enum):
    """Result of one notification attempt."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class NudgeOutcome(BaseModel):
    """One partner notification attempt."""

    status: NudgeStatus
    reason: str
    email: Optional[str] = None
    phone: Optional[str] = None


class NudgeDetail(NudgeOutcome):
    """Attempt as itemized in a sweep report."""

    goal_id: str
    goal: str


class SweepReport(BaseModel):
    """Aggregate result of one sweep over all goals."""

    success: bool = True
    completed: bool = True
    goals_scanned: int = 0
    users_checked: int = 0
    nudges_sent: int = 0
    error: Optional[str] = None
    details: list[NudgeDetail] = Field(default_factory=list)

    def record(self, goal_id: str, goal: str, outcome: NudgeOutcome) -> None:
        """Add a partner attempt to the report."""
        self.details.append(
            NudgeDetail(goal_id=goal_id, goal=goal, **outcome.model_dump())
        )
        if outcome.status == NudgeStatus.SENT:
            self.nudges_sent += 1
