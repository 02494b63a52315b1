"""Streak engine - pure check-in state transitions.

Days are compared as calendar dates, not as elapsed time: a check-in at
23:59 followed by one at 00:01 counts as consecutive days.
"""
from datetime import datetime, timedelta
from typing import Optional

from app.models.checkin import CheckInOutcome, CheckInResult


def compute_check_in(
    prior_last_check_in: Optional[datetime],
    prior_streak: int,
    now: datetime,
) -> CheckInResult:
    """
    Apply a check-in at ``now`` to a goal's streak.

    Args:
        prior_last_check_in: Previous check-in instant, None if never
        prior_streak: Streak stored on the goal
        now: Instant of this check-in

    Returns:
        CheckInResult. ALREADY_DONE keeps the stored state untouched,
        INCREMENTED and RESET carry the new streak and ``now``.

    Example:
        >>> compute_check_in(None, 0, datetime(2026, 1, 1, 9)).streak
        1
        >>> compute_check_in(
        ...     datetime(2026, 1, 1, 23, 59), 4, datetime(2026, 1, 2, 0, 1)
        ... ).outcome.value
        'incremented'
    """
    if prior_last_check_in is not None:
        today = now.date()
        last_day = prior_last_check_in.date()

        if last_day == today:
            return CheckInResult(
                outcome=CheckInOutcome.ALREADY_DONE,
                streak=prior_streak,
                last_check_in_at=prior_last_check_in,
            )

        if last_day == today - timedelta(days=1):
            return CheckInResult(
                outcome=CheckInOutcome.INCREMENTED,
                streak=prior_streak + 1,
                last_check_in_at=now,
            )

    # First check-in, missed days, or a check-in dated in the future
    return CheckInResult(
        outcome=CheckInOutcome.RESET,
        streak=1,
        last_check_in_at=now,
    )
