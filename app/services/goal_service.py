"""Goal service - business logic for goals, partners and check-ins."""
import structlog

from app.exceptions import NotFoundError, OwnershipError
from app.models.checkin import CheckInResponse
from app.models.goal import Goal, GoalCreate, GoalWithPartners
from app.services.auth_service import AuthService
from app.services.goal_store import GoalStore, to_object_id
from app.services.streak import compute_check_in
from app.utils.clock import Clock, system_clock

log = structlog.get_logger(__name__)

ALREADY_CHECKED_IN_MESSAGE = "Already checked in today"


class GoalService:
    """Service for handling goal operations."""

    def __init__(self, db, clock: Clock = system_clock, use_transactions: bool = False):
        """Initialize service with database connection."""
        self.db = db
        self.store = GoalStore(db, use_transactions=use_transactions)
        self.auth = AuthService(db, clock=clock)
        self.clock = clock

    async def _get_owned_goal(self, user_id: str, goal_id: str) -> Goal:
        """
        Resolve a goal and check it belongs to the caller.

        Raises:
            ValidationError: If the goal id is malformed
            NotFoundError: If the goal does not exist
            OwnershipError: If the goal belongs to another user
        """
        to_object_id(goal_id)

        goal = await self.store.get_goal(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        if goal.user_id != user_id:
            raise OwnershipError("Goal belongs to another user")
        return goal

    async def _insert_goal(self, user_id: str, goal_create: GoalCreate, session=None) -> GoalWithPartners:
        now = self.clock.now()
        goal = await self.store.create_goal(user_id, goal_create, now, session=session)

        partners = []
        for partner in goal_create.partners_to_store():
            partners.append(
                await self.store.create_partner(goal.id, partner, now, session=session)
            )

        return GoalWithPartners(**goal.model_dump(), accountability_partners=partners)

    async def create_goal(self, user_id: str, goal_create: GoalCreate) -> GoalWithPartners:
        """
        Create a goal with its accountability partners.

        Partner entries without any contact method are dropped. Once the goal
        is stored the caller is marked onboarded, as adding a goal is a way
        of onboarding.

        Raises:
            NotFoundError: If the user does not exist
        """
        await self.auth.get_user_by_id(user_id)
        goal = await self._insert_goal(user_id, goal_create)
        await self.auth.mark_onboarded(user_id)
        log.info("goal.created", goal_id=goal.id, user_id=user_id)
        return goal

    async def replace_goals(self, user_id: str, goals: list[GoalCreate]) -> list[GoalWithPartners]:
        """
        Replace the user's whole goal set (re-onboarding).

        Every existing goal is deleted with its partners before the new set
        is inserted; streaks start over. The onboarding flag is set in the
        same transaction as the inserts when transactions are in use.

        Raises:
            NotFoundError: If the user does not exist
        """
        await self.auth.get_user_by_id(user_id)
        existing = await self.store.get_goals_by_owner(user_id)

        async with self.store.transaction() as session:
            for goal in existing:
                await self.store.delete_goal(goal.id, session=session)

            created = []
            for goal_create in goals:
                created.append(await self._insert_goal(user_id, goal_create, session=session))

            await self.auth.mark_onboarded(user_id, session=session)

        log.info(
            "goal.set_replaced",
            user_id=user_id,
            deleted=len(existing),
            created=len(created),
        )
        return created

    async def list_goals(self, user_id: str) -> list[GoalWithPartners]:
        """List the user's goals with their partners."""
        goals = await self.store.get_goals_by_owner(user_id)
        return [
            GoalWithPartners(
                **goal.model_dump(),
                accountability_partners=await self.store.get_partners_by_goal(goal.id),
            )
            for goal in goals
        ]

    async def get_goal(self, user_id: str, goal_id: str) -> GoalWithPartners:
        """Get one of the user's goals with its partners."""
        goal = await self._get_owned_goal(user_id, goal_id)
        partners = await self.store.get_partners_by_goal(goal.id)
        return GoalWithPartners(**goal.model_dump(), accountability_partners=partners)

    async def delete_goal(self, user_id: str, goal_id: str) -> dict:
        """
        Delete one of the user's goals and its partners.

        Returns:
            Dictionary with deleted_count
        """
        goal = await self._get_owned_goal(user_id, goal_id)
        deleted = await self.store.delete_goal(goal.id)
        log.info("goal.deleted", goal_id=goal.id, user_id=user_id)
        return {"deleted_count": deleted}

    async def check_in(self, user_id: str, goal_id: str) -> CheckInResponse:
        """
        Record a check-in on a goal and update its streak.

        Checking in twice on the same calendar day is not an error: the
        stored state is left alone and reported back with a message.

        Raises:
            ValidationError: If the goal id is malformed
            NotFoundError: If the user or the goal does not exist
            OwnershipError: If the goal belongs to another user
        """
        to_object_id(goal_id)
        await self.auth.get_user_by_id(user_id)
        goal = await self._get_owned_goal(user_id, goal_id)

        now = self.clock.now()
        result = compute_check_in(goal.last_check_in_at, goal.streak, now)

        if not result.changed:
            return CheckInResponse(
                outcome=result.outcome,
                streak=result.streak,
                last_check_in_at=result.last_check_in_at,
                message=ALREADY_CHECKED_IN_MESSAGE,
            )

        await self.store.update_goal_check_in(
            goal.id,
            streak=result.streak,
            last_check_in_at=result.last_check_in_at,
            now=now,
        )
        log.info(
            "checkin.recorded",
            goal_id=goal.id,
            outcome=result.outcome.value,
            streak=result.streak,
        )

        return CheckInResponse(
            outcome=result.outcome,
            streak=result.streak,
            last_check_in_at=result.last_check_in_at,
        )
