from models.actor import Actor, PROFILE_SUMMARY_COLUMNS
from services.database import StoreError
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class SessionContext:
    """The signed-in viewer, passed by reference to everything that needs identity

    There is exactly one of these per request (or per mounted view); nothing
    keeps its own copy of the viewer's profile.
    """

    def __init__(self, profile: Optional[Actor] = None):
        self.profile = profile

    @property
    def user_id(self) -> Optional[str]:
        return self.profile.id if self.profile else None

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.profile and self.profile.is_admin)

    @classmethod
    async def load(cls, db, user_id: Optional[str]) -> "SessionContext":
        """
        Build a session for user_id from its profile row

        Args:
            db: DatabaseService instance
            user_id: Authenticated user id, or None for anonymous visitors

        Returns:
            SessionContext; anonymous if the id is empty or has no profile
        """
        if not user_id:
            return cls()

        try:
            row = await db.select_one(
                "profiles", {"id": user_id}, columns=f"{PROFILE_SUMMARY_COLUMNS}, is_admin"
            )
        except StoreError as e:
            logger.error(f"Error loading profile for session {user_id}: {e}")
            return cls()

        if not row:
            logger.warning(f"No profile found for user {user_id}")
            return cls()

        return cls(Actor(**row))
