"""Tests for the nudge scheduler."""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from app.models.goal import Cadence, Goal, Partner
from app.models.nudge import NudgeOutcome, NudgeStatus
from app.services.goal_store import GoalStore
from app.services.notifier import NotificationDispatcher, RecordingEmailTransport
from app.services.nudge_scheduler import NudgeScheduler, is_overdue
from app.utils.clock import FixedClock
from tests.factories import make_cursor, make_goal_doc

NOW = datetime(2026, 1, 10, 12, 0)


def make_goal(goal_id="goal1", user_id="user1", cadence=Cadence.DAILY, last_check_in_at=None):
    return Goal(
        _id=goal_id,
        user_id=user_id,
        description=f"Practice guitar ({goal_id})",
        cadence=cadence,
        streak=0 if last_check_in_at is None else 1,
        last_check_in_at=last_check_in_at,
        created_at=datetime(2026, 1, 1),
        updated_at=datetime(2026, 1, 1),
    )


def make_partner(goal_id="goal1", email=None, phone=None, partner_id="p1"):
    return Partner(
        _id=partner_id,
        goal_id=goal_id,
        email=email,
        phone=phone,
        created_at=datetime(2026, 1, 1),
    )


def make_store(goals, partners_by_goal=None):
    partners_by_goal = partners_by_goal or {}
    store = MagicMock()
    store.get_all_goals = AsyncMock(return_value=goals)
    store.get_partners_by_goal = AsyncMock(
        side_effect=lambda goal_id: partners_by_goal.get(goal_id, [])
    )
    return store


class SentDispatcher:
    """Dispatcher reporting every attempt as sent."""

    def __init__(self):
        self.calls = []

    async def dispatch(self, partner, context):
        self.calls.append((partner, context))
        return NudgeOutcome(status=NudgeStatus.SENT, reason="ok", email=partner.email)


class DeliveringTransport:
    """Transport that accepts every message."""

    delivers = True

    async def send_email(self, to, subject, body, html=None):
        pass


class TestIsOverdue:
    """Tests for the cadence policy."""

    def test_no_cadence_never_overdue(self):
        assert is_overdue(make_goal(cadence=None), NOW) is False
        assert is_overdue(
            make_goal(cadence=None, last_check_in_at=NOW - timedelta(days=400)), NOW
        ) is False

    @pytest.mark.parametrize("cadence", [Cadence.DAILY, Cadence.WEEKLY])
    def test_never_checked_in_is_overdue(self, cadence):
        assert is_overdue(make_goal(cadence=cadence), NOW) is True

    def test_daily_threshold(self):
        assert is_overdue(make_goal(last_check_in_at=NOW - timedelta(hours=23)), NOW) is False
        assert is_overdue(make_goal(last_check_in_at=NOW - timedelta(hours=24)), NOW) is False
        assert is_overdue(
            make_goal(last_check_in_at=NOW - timedelta(hours=24, seconds=1)), NOW
        ) is True

    def test_weekly_threshold(self):
        goal_six_days = make_goal(cadence=Cadence.WEEKLY, last_check_in_at=NOW - timedelta(days=6))
        goal_eight_days = make_goal(cadence=Cadence.WEEKLY, last_check_in_at=NOW - timedelta(days=8))

        assert is_overdue(goal_six_days, NOW) is False
        assert is_overdue(goal_eight_days, NOW) is True

    def test_yesterday_late_check_in_not_overdue_for_daily(self):
        # Duration based: 23:00 yesterday is only 13 hours ago at noon
        goal = make_goal(last_check_in_at=datetime(2026, 1, 9, 23, 0))

        assert is_overdue(goal, NOW) is False

    def test_overdue_stays_overdue_as_time_passes(self):
        goal = make_goal(last_check_in_at=NOW - timedelta(days=2))

        for hours in (0, 1, 24, 24 * 30):
            assert is_overdue(goal, NOW + timedelta(hours=hours)) is True


@pytest.mark.asyncio
class TestRunSweep:
    """Tests for a full sweep."""

    async def test_new_daily_goal_nudged_after_25_hours(self):
        created = datetime(2026, 1, 1, 9, 0)
        goal = make_goal()
        store = make_store(
            [goal],
            {"goal1": [
                make_partner(email="a@example.com", partner_id="p1"),
                make_partner(email="b@example.com", partner_id="p2"),
            ]},
        )
        dispatcher = SentDispatcher()
        scheduler = NudgeScheduler(store, dispatcher)

        report = await scheduler.run_sweep(now=created + timedelta(hours=25))

        assert report.goals_scanned == 1
        assert report.users_checked == 1
        assert report.nudges_sent == 2
        assert report.completed is True
        assert [d.email for d in report.details] == ["a@example.com", "b@example.com"]
        assert report.details[0].goal_id == "goal1"
        assert report.details[0].goal == goal.description
        assert dispatcher.calls[0][1].last_check_in_label == "never"

    async def test_skips_goals_without_cadence_or_not_overdue(self):
        goals = [
            make_goal("none", cadence=None),
            make_goal("fresh", last_check_in_at=NOW - timedelta(hours=2)),
            make_goal("stale", user_id="user2", last_check_in_at=NOW - timedelta(days=3)),
        ]
        store = make_store(goals, {
            "none": [make_partner("none", email="x@example.com")],
            "fresh": [make_partner("fresh", email="y@example.com")],
            "stale": [make_partner("stale", email="z@example.com")],
        })
        scheduler = NudgeScheduler(store, SentDispatcher())

        report = await scheduler.run_sweep(now=NOW)

        assert report.goals_scanned == 3
        assert report.users_checked == 2
        assert [d.goal_id for d in report.details] == ["stale"]
        store.get_partners_by_goal.assert_awaited_once_with("stale")

    async def test_overdue_goal_without_partners_is_silently_skipped(self):
        store = make_store([make_goal()])
        scheduler = NudgeScheduler(store, SentDispatcher())

        report = await scheduler.run_sweep(now=NOW)

        assert report.details == []
        assert report.nudges_sent == 0
        assert report.completed is True

    async def test_failure_does_not_stop_sweep(self):
        goals = [make_goal("g1"), make_goal("g2", user_id="user2")]
        store = make_store(goals, {
            "g1": [make_partner("g1", email="broken@example.com")],
            "g2": [make_partner("g2", email="ok@example.com")],
        })

        dispatcher = MagicMock()
        dispatcher.dispatch = AsyncMock(side_effect=[
            NudgeOutcome(status=NudgeStatus.FAILED, reason="boom", email="broken@example.com"),
            NudgeOutcome(status=NudgeStatus.SENT, reason="ok", email="ok@example.com"),
        ])
        scheduler = NudgeScheduler(store, dispatcher)

        report = await scheduler.run_sweep(now=NOW)

        assert [d.status for d in report.details] == [NudgeStatus.FAILED, NudgeStatus.SENT]
        assert report.nudges_sent == 1
        assert report.success is True

    async def test_phone_only_partner_is_reported_as_skipped(self):
        store = make_store([make_goal()], {"goal1": [make_partner(phone="+44 20 7946 0000")]})
        scheduler = NudgeScheduler(store, NotificationDispatcher(RecordingEmailTransport()))

        report = await scheduler.run_sweep(now=NOW)

        assert report.details[0].status == NudgeStatus.SKIPPED
        assert report.details[0].reason == "sms-not-implemented"
        assert report.nudges_sent == 0

    async def test_stored_partner_without_contact_is_skipped(self, mock_db):
        g1 = make_goal_doc(user_id="user1", last_check_in_at=NOW - timedelta(days=2))
        g2 = make_goal_doc(user_id="user2", last_check_in_at=NOW - timedelta(days=2))
        mock_db.collections["goals"].find.return_value = make_cursor([g1, g2])
        partner_docs = {
            str(g1["_id"]): [{"_id": ObjectId(), "goal_id": str(g1["_id"]),
                              "email": "a@example.com", "phone": None, "created_at": NOW}],
            str(g2["_id"]): [{"_id": ObjectId(), "goal_id": str(g2["_id"]),
                              "email": None, "phone": None, "created_at": NOW}],
        }
        mock_db.collections["partners"].find.side_effect = (
            lambda query: make_cursor(partner_docs[query["goal_id"]])
        )
        scheduler = NudgeScheduler(GoalStore(mock_db), NotificationDispatcher(DeliveringTransport()))

        report = await scheduler.run_sweep(now=NOW)

        assert report.completed is True
        assert [d.status for d in report.details] == [NudgeStatus.SENT, NudgeStatus.SKIPPED]
        assert report.details[1].reason == "no-contact-method"
        assert report.nudges_sent == 1

    async def test_repeated_sweeps_nudge_again(self):
        store = make_store([make_goal()], {"goal1": [make_partner(email="a@example.com")]})
        dispatcher = SentDispatcher()
        scheduler = NudgeScheduler(store, dispatcher)

        await scheduler.run_sweep(now=NOW)
        await scheduler.run_sweep(now=NOW + timedelta(minutes=5))

        assert len(dispatcher.calls) == 2

    async def test_uses_clock_when_now_not_given(self):
        store = make_store([make_goal(last_check_in_at=datetime(2026, 1, 10, 8, 0))],
                           {"goal1": [make_partner(email="a@example.com")]})
        clock = FixedClock(datetime(2026, 1, 10, 12, 0))
        scheduler = NudgeScheduler(store, SentDispatcher(), clock=clock)

        assert (await scheduler.run_sweep()).details == []

        clock.set(datetime(2026, 1, 11, 9, 0))
        assert len((await scheduler.run_sweep()).details) == 1

    async def test_store_failure_before_scan_raises(self):
        store = MagicMock()
        store.get_all_goals = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
        dispatcher = SentDispatcher()
        scheduler = NudgeScheduler(store, dispatcher)

        with pytest.raises(ServerSelectionTimeoutError):
            await scheduler.run_sweep(now=NOW)
        assert dispatcher.calls == []

    async def test_store_failure_mid_sweep_returns_partial_report(self):
        goals = [make_goal("g1"), make_goal("g2"), make_goal("g3")]
        partners = {"g1": [make_partner("g1", email="a@example.com")]}

        async def get_partners(goal_id):
            if goal_id == "g2":
                raise ServerSelectionTimeoutError("connection lost")
            return partners.get(goal_id, [])

        store = make_store(goals)
        store.get_partners_by_goal = AsyncMock(side_effect=get_partners)
        scheduler = NudgeScheduler(store, SentDispatcher())

        report = await scheduler.run_sweep(now=NOW)

        assert report.completed is False
        assert "g2" in report.error
        assert [d.goal_id for d in report.details] == ["g1"]
        assert report.nudges_sent == 1
