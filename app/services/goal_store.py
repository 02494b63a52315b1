"""Goal record store - MongoDB persistence for goals and their partners."""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from app.exceptions import ValidationError
from app.models.goal import Goal, GoalBase, Partner, PartnerCreate


def to_object_id(goal_id: str) -> ObjectId:
    """
    Parse a goal id.

    Raises:
        ValidationError: If the id is missing or malformed
    """
    if not goal_id:
        raise ValidationError("Goal ID is required")
    try:
        return ObjectId(goal_id)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid goal ID format")


class GoalStore:
    """Key-addressed access to the ``goals`` and ``partners`` collections.

    Partners reference their goal by the goal id string. Deleting a goal
    deletes its partners first; with ``use_transactions`` both deletes run
    in one MongoDB transaction.
    """

    def __init__(self, db, use_transactions: bool = False):
        """Initialize store with database connection."""
        self.db = db
        self.goals = db["goals"]
        self.partners = db["partners"]
        self.use_transactions = use_transactions

    def _doc_to_goal(self, doc: dict) -> Goal:
        """Convert database document to Goal model."""
        return Goal(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            description=doc["description"],
            cadence=doc.get("cadence"),
            streak=doc.get("streak", 0),
            last_check_in_at=doc.get("last_check_in_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_partner(self, doc: dict) -> Partner:
        return Partner(
            _id=str(doc["_id"]),
            goal_id=doc["goal_id"],
            email=doc.get("email"),
            phone=doc.get("phone"),
            created_at=doc["created_at"],
        )

    @asynccontextmanager
    async def transaction(self):
        """
        Yield a session bound to a transaction, or None.

        Without ``use_transactions`` the writes inside simply run in order.
        """
        if not self.use_transactions:
            yield None
            return

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        """Look up a goal by id, None if it does not exist."""
        doc = await self.goals.find_one({"_id": to_object_id(goal_id)})
        if not doc:
            return None
        return self._doc_to_goal(doc)

    async def get_goals_by_owner(self, user_id: str) -> list[Goal]:
        """All goals owned by a user, oldest first."""
        cursor = self.goals.find({"user_id": user_id}).sort("created_at", 1)
        docs = await cursor.to_list(length=None)
        return [self._doc_to_goal(doc) for doc in docs]

    async def get_all_goals(self) -> list[Goal]:
        """Every goal of every owner."""
        cursor = self.goals.find({})
        docs = await cursor.to_list(length=None)
        return [self._doc_to_goal(doc) for doc in docs]

    async def get_partners_by_goal(self, goal_id: str) -> list[Partner]:
        """Accountability partners attached to a goal."""
        cursor = self.partners.find({"goal_id": goal_id})
        docs = await cursor.to_list(length=None)
        return [self._doc_to_partner(doc) for doc in docs]

    async def update_goal_check_in(
        self,
        goal_id: str,
        streak: int,
        last_check_in_at: datetime,
        now: datetime,
    ) -> None:
        """Persist new streak state for a goal (single-document update)."""
        await self.goals.update_one(
            {"_id": to_object_id(goal_id)},
            {
                "$set": {
                    "streak": streak,
                    "last_check_in_at": last_check_in_at,
                    "updated_at": now,
                }
            },
        )

    async def create_goal(
        self,
        user_id: str,
        goal: GoalBase,
        now: datetime,
        session=None,
    ) -> Goal:
        """Insert a goal with a zero streak and no check-in."""
        goal_doc = {
            "user_id": user_id,
            "description": goal.description,
            "cadence": goal.cadence.value if goal.cadence else None,
            "streak": 0,
            "last_check_in_at": None,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.goals.insert_one(goal_doc, session=session)
        goal_doc["_id"] = result.inserted_id

        return self._doc_to_goal(goal_doc)

    async def create_partner(
        self,
        goal_id: str,
        partner: PartnerCreate,
        now: datetime,
        session=None,
    ) -> Partner:
        """Attach an accountability partner to a goal."""
        partner_doc = {
            "goal_id": goal_id,
            "email": partner.email,
            "phone": partner.phone,
            "created_at": now,
        }

        result = await self.partners.insert_one(partner_doc, session=session)
        partner_doc["_id"] = result.inserted_id

        return self._doc_to_partner(partner_doc)

    async def delete_goal(self, goal_id: str, session=None) -> int:
        """
        Delete a goal together with its partners.

        Args:
            goal_id: Goal ID
            session: Transaction session from ``transaction()``, if any

        Returns:
            Number of goal documents removed (0 or 1)
        """
        object_id = to_object_id(goal_id)

        if session is None and self.use_transactions:
            async with self.transaction() as session:
                return await self._delete_goal(object_id, goal_id, session)
        return await self._delete_goal(object_id, goal_id, session)

    async def _delete_goal(self, object_id: ObjectId, goal_id: str, session) -> int:
        await self.partners.delete_many({"goal_id": goal_id}, session=session)
        result = await self.goals.delete_one({"_id": object_id}, session=session)
        return result.deleted_count
