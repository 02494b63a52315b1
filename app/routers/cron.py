"""Cron router - externally triggered nudge sweeps."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.errors import PyMongoError

from app.config import settings
from app.database import get_database
from app.models.nudge import SweepReport
from app.services.goal_store import GoalStore
from app.services.notifier import NotificationDispatcher
from app.services.nudge_scheduler import NudgeScheduler
from app.utils.auth import verify_shared_secret
from app.utils.clock import Clock, get_clock

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])
security = HTTPBearer(auto_error=False)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Dispatcher built at startup around the configured transport."""
    return request.app.state.dispatcher


async def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    """
    Reject the trigger unless it carries the configured bearer secret.

    The response is the same whether the secret is wrong or not configured.
    """
    provided = credentials.credentials if credentials else None
    if not verify_shared_secret(provided, settings.cron_secret):
        log.warning("nudge.trigger.rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.api_route(
    "/nudge",
    methods=["GET", "POST"],
    response_model=SweepReport,
    dependencies=[Depends(require_cron_secret)],
)
async def run_nudge_sweep(
    db=Depends(get_database),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
):
    """
    Run one sweep over all goals and nudge partners of overdue ones.

    - Requires ``Authorization: Bearer <CRON_SECRET>``
    - Returns 500 only if the goals could not be loaded at all
    """
    scheduler = NudgeScheduler(GoalStore(db), dispatcher, clock=clock)
    try:
        return await scheduler.run_sweep()
    except PyMongoError as e:
        log.error("nudge.sweep.failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process nudges",
        )
