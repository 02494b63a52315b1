"""Nudge scheduler - finds overdue goals and notifies their partners.

Overdue detection is duration based (24 hours for daily goals, 7 days for
weekly ones) and independent of the calendar-day rule used for streaks.
A sweep keeps no state between runs: a goal stays overdue, and its partners
keep being nudged on every sweep, until its owner checks in.
"""
from datetime import datetime, timedelta
from typing import Optional

import structlog
from pymongo.errors import PyMongoError

from app.models.goal import Cadence, Goal
from app.models.nudge import SweepReport
from app.services.goal_store import GoalStore
from app.services.notifier import NotificationDispatcher, NudgeContext, last_check_in_label
from app.utils.clock import Clock, system_clock

log = structlog.get_logger(__name__)

CADENCE_THRESHOLDS = {
    Cadence.DAILY: timedelta(hours=24),
    Cadence.WEEKLY: timedelta(days=7),
}


def is_overdue(goal: Goal, now: datetime) -> bool:
    """
    Whether a goal's partners should be nudged at ``now``.

    Goals without a cadence are never overdue.
    """
    if goal.cadence is None:
        return False
    if goal.last_check_in_at is None:
        return True
    return goal.last_check_in_at < now - CADENCE_THRESHOLDS[goal.cadence]


class NudgeScheduler:
    """Runs sweeps over every goal in the store."""

    def __init__(
        self,
        store: GoalStore,
        dispatcher: NotificationDispatcher,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Nudge the partners of every overdue goal once.

        Args:
            now: Reference instant, defaults to the scheduler's clock

        Returns:
            SweepReport. A failed notification is an item in the report. A
            store failure after the goal scan stops the sweep and returns
            what was done so far with ``completed`` set to False.

        Raises:
            PyMongoError: If the goals cannot be loaded at all
        """
        if now is None:
            now = self.clock.now()

        goals = await self.store.get_all_goals()

        report = SweepReport(
            goals_scanned=len(goals),
            users_checked=len({goal.user_id for goal in goals}),
        )
        log.info("nudge.sweep.started", goals=report.goals_scanned, now=now.isoformat())

        for goal in goals:
            if not is_overdue(goal, now):
                continue

            try:
                partners = await self.store.get_partners_by_goal(goal.id)
            except PyMongoError as e:
                log.error("nudge.sweep.aborted", goal_id=goal.id, error=str(e))
                report.completed = False
                report.error = f"Failed to load partners for goal {goal.id}: {e}"
                break

            if not partners:
                continue

            context = NudgeContext(
                goal_description=goal.description,
                last_check_in_label=last_check_in_label(goal.last_check_in_at),
            )
            for partner in partners:
                outcome = await self.dispatcher.dispatch(partner, context)
                report.record(goal.id, goal.description, outcome)

        log.info(
            "nudge.sweep.completed",
            completed=report.completed,
            attempts=len(report.details),
            nudges_sent=report.nudges_sent,
        )
        return report
