"""Authentication service - user accounts and onboarding state."""
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from app.exceptions import NotFoundError
from app.models.user import User
from app.utils.auth import create_access_token, hash_password, verify_password
from app.utils.clock import Clock, system_clock


class AuthService:
    """Service for user accounts."""

    def __init__(self, db, clock: Clock = system_clock):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]
        self.clock = clock

    def _doc_to_user(self, doc: dict) -> User:
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            name=doc["name"],
            onboarded=doc.get("onboarded", False),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def _find_user(self, user_id: str) -> Optional[dict]:
        try:
            object_id = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        return await self.users.find_one({"_id": object_id})

    async def register_user(self, email: str, password: str, name: str) -> User:
        """
        Register a new user.

        Args:
            email: User email address
            password: Plain text password
            name: User's name

        Returns:
            User object (without password)

        Raises:
            ValueError: If email is already registered
        """
        existing = await self.users.find_one({"email": email})
        if existing:
            raise ValueError("Email already registered")

        now = self.clock.now()
        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "name": name,
            "onboarded": False,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.users.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id

        return self._doc_to_user(user_doc)

    async def login(self, email: str, password: str) -> str:
        """
        Check credentials and issue a JWT.

        Raises:
            ValueError: If credentials are invalid
        """
        user_doc = await self.users.find_one({"email": email})
        if not user_doc:
            raise ValueError("Invalid email or password")

        if not verify_password(password, user_doc["hashed_password"]):
            raise ValueError("Invalid email or password")

        return create_access_token(user_id=str(user_doc["_id"]))

    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            NotFoundError: If the id is malformed or no such user exists
        """
        user_doc = await self._find_user(user_id)
        if not user_doc:
            raise NotFoundError("User not found")

        return self._doc_to_user(user_doc)

    async def is_onboarded(self, user_id: str) -> bool:
        """Onboarding flag, False for unknown users."""
        user_doc = await self._find_user(user_id)
        return bool(user_doc and user_doc.get("onboarded", False))

    async def mark_onboarded(self, user_id: str, session=None) -> None:
        """
        Flag the user as having submitted goals.

        Args:
            user_id: User ID
            session: Transaction session the flag is written in, if any

        Raises:
            NotFoundError: If no such user exists
        """
        user_doc = await self._find_user(user_id)
        if not user_doc:
            raise NotFoundError("User not found")

        if not user_doc.get("onboarded", False):
            await self.users.update_one(
                {"_id": user_doc["_id"]},
                {"$set": {"onboarded": True, "updated_at": self.clock.now()}},
                session=session,
            )
