"""Goal router - API endpoints for goals, onboarding and check-ins."""
from fastapi import APIRouter, Depends, HTTPException, status

from app.config import settings
from app.database import get_database
from app.exceptions import NotFoundError, OwnershipError, ValidationError
from app.models.checkin import CheckInRequest, CheckInResponse
from app.models.goal import GoalCreate, GoalWithPartners, OnboardingRequest
from app.routers.auth import get_current_user_id
from app.services.goal_service import GoalService
from app.utils.clock import Clock, get_clock


router = APIRouter(tags=["goals"])


def service_error(e: ValueError) -> HTTPException:
    """Map a service-layer error to its HTTP status."""
    if isinstance(e, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, OwnershipError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))


def goal_service(db, clock: Clock) -> GoalService:
    return GoalService(db, clock=clock, use_transactions=settings.mongodb_transactions)


@router.post("/goals", response_model=GoalWithPartners, status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal: GoalCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Create a new goal.

    - Requires authentication
    - Partners without email or phone are dropped
    - Marks the user onboarded
    """
    try:
        return await goal_service(db, clock).create_goal(user_id=user_id, goal_create=goal)
    except ValueError as e:
        raise service_error(e)


@router.get("/goals", response_model=list[GoalWithPartners])
async def list_goals(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """List the authenticated user's goals with their partners."""
    return await goal_service(db, clock).list_goals(user_id=user_id)


@router.get("/goals/{goal_id}", response_model=GoalWithPartners)
async def get_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Get a single goal.

    - 400 for a malformed id, 404 if unknown, 403 if owned by someone else
    """
    try:
        return await goal_service(db, clock).get_goal(user_id=user_id, goal_id=goal_id)
    except ValueError as e:
        raise service_error(e)


@router.delete("/goals/{goal_id}")
async def delete_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """Delete a goal and all of its accountability partners."""
    try:
        return await goal_service(db, clock).delete_goal(user_id=user_id, goal_id=goal_id)
    except ValueError as e:
        raise service_error(e)


@router.post("/onboarding", response_model=list[GoalWithPartners])
async def onboard(
    onboarding: OnboardingRequest,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Submit the user's goal set.

    - Replaces any goals (and partners) the user already had
    - Marks the user onboarded
    """
    try:
        return await goal_service(db, clock).replace_goals(user_id=user_id, goals=onboarding.goals)
    except ValueError as e:
        raise service_error(e)


@router.post("/checkin", response_model=CheckInResponse)
async def check_in(
    checkin: CheckInRequest,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
):
    """
    Check in on a goal for today.

    - A second check-in on the same day succeeds with
      "Already checked in today" and leaves the streak alone
    - 400 for a malformed id, 404 if the goal or user is unknown,
      403 if the goal belongs to someone else
    """
    try:
        return await goal_service(db, clock).check_in(user_id=user_id, goal_id=checkin.goal_id)
    except ValueError as e:
        raise service_error(e)
