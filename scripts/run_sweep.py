"""Run one nudge sweep without going through the HTTP trigger.

Usage:
    # Use MONGODB_URL / SMTP_* from the environment or .env
    python scripts/run_sweep.py

    # Evaluate overdue goals as of another instant, printing JSON
    python scripts/run_sweep.py --now 2026-01-02T11:00:00 --json
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import settings
from app.database import database
from app.services.goal_store import GoalStore
from app.services.notifier import NotificationDispatcher, build_email_transport
from app.services.nudge_scheduler import NudgeScheduler
from app.utils.clock import as_naive_utc
from app.utils.logging import configure_logging


def parse_instant(value: str) -> datetime:
    """ISO 8601 instant as naive UTC; a trailing Z or an offset is converted."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return as_naive_utc(datetime.fromisoformat(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 instant: {value!r}")


async def run(now: datetime | None, as_json: bool) -> int:
    """Connect, sweep, print the report. Returns the process exit code."""
    await database.connect()
    try:
        scheduler = NudgeScheduler(
            GoalStore(database.db),
            NotificationDispatcher(build_email_transport(settings)),
        )
        report = await scheduler.run_sweep(now=now)
    finally:
        await database.disconnect()

    if as_json:
        print(report.model_dump_json(indent=2))
    else:
        print(f"Goals scanned: {report.goals_scanned}")
        print(f"Users checked: {report.users_checked}")
        print(f"Nudges sent:   {report.nudges_sent}")
        for item in report.details:
            contact = item.email or item.phone or "-"
            print(f"  [{item.status.value}] {item.goal_id} {contact}: {item.reason}")
        if not report.completed:
            print(f"Sweep stopped early: {report.error}")

    return 0 if report.completed else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Nudge accountability partners of overdue goals")
    parser.add_argument(
        "--now",
        type=parse_instant,
        default=None,
        help="Reference instant (ISO 8601, naive values are UTC); defaults to the current time",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args()

    configure_logging(settings.log_level, settings.json_logs)
    sys.exit(asyncio.run(run(args.now, args.json)))


if __name__ == "__main__":
    main()
