"""
FollowService: follow/unfollow mutations and follow-graph reads

The follow edge is the source of truth. The `new_follower` notification
written after it is best-effort: its failure is logged and never rolls
back or fails the follow. Every successful mutation is announced on the
service's FollowEventBus.
"""

from services.database import DatabaseService, StoreError
from services.notification_service import NotificationService
from services.follow_events import FollowEventBus
from models.follow_edge import FollowEdge, FollowEvent
from models.notification import NotificationType
from models.results import ErrorCode, FollowStats, FollowStatus, MutationResult, MutualCount
from typing import Optional, Set
import asyncio
import logging
import time

logger = logging.getLogger(__name__)

TABLE = "followers"


class FollowService:
    """Applies follow-graph transitions against the `followers` table"""

    def __init__(
        self,
        db: DatabaseService,
        notifications: Optional[NotificationService] = None,
        events: Optional[FollowEventBus] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.events = events or FollowEventBus()

    # ==================== MUTATIONS ====================

    async def follow_user(self, follower_id: str, following_id: str) -> MutationResult:
        """
        Create a follow edge and notify the followed user

        Args:
            follower_id: The user who is following
            following_id: The user being followed

        Returns:
            MutationResult; failure codes are missing_identifier,
            self_follow, already_following and store_error
        """
        if not follower_id or not following_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both follower and following IDs are required"
            )

        if follower_id == following_id:
            return MutationResult.fail(ErrorCode.SELF_FOLLOW, "Cannot follow yourself")

        match = {"follower_id": follower_id, "following_id": following_id}

        try:
            existing = await self.db.select_one(TABLE, match, columns="id")
            if existing:
                return MutationResult.fail(
                    ErrorCode.ALREADY_FOLLOWING, "Already following this user"
                )

            edge = FollowEdge(**match)
            await self.db.insert(TABLE, edge.model_dump(exclude_none=True, mode="json"))
        except StoreError as e:
            logger.error(f"Error following {following_id} as {follower_id}: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))
        except Exception as e:
            logger.error(f"Unexpected error in follow_user: {e}", exc_info=True)
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))

        notification = await self.notifications.create_notification(
            following_id, follower_id, NotificationType.NEW_FOLLOWER.value
        )
        if not notification.success:
            logger.warning(f"Follow successful but notification failed: {notification.error}")

        self._broadcast("follow", follower_id, following_id)
        logger.info(f"{follower_id} followed {following_id}")
        return MutationResult.ok()

    async def unfollow_user(self, follower_id: str, following_id: str) -> MutationResult:
        """
        Remove a follow edge if it exists

        Unfollowing when no edge exists succeeds, so retries are safe.
        Notifications about the earlier follow are kept.
        """
        if not follower_id or not following_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both follower and following IDs are required"
            )

        try:
            await self.db.delete(
                TABLE, {"follower_id": follower_id, "following_id": following_id}
            )
        except StoreError as e:
            logger.error(f"Error unfollowing {following_id} as {follower_id}: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))
        except Exception as e:
            logger.error(f"Unexpected error in unfollow_user: {e}", exc_info=True)
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))

        self._broadcast("unfollow", follower_id, following_id)
        logger.info(f"{follower_id} unfollowed {following_id}")
        return MutationResult.ok()

    # ==================== READS ====================

    async def check_follow_status(self, follower_id: str, following_id: str) -> FollowStatus:
        """Check whether follower_id follows following_id"""
        if not follower_id or not following_id:
            return FollowStatus(is_following=False)

        try:
            row = await self.db.select_one(
                TABLE,
                {"follower_id": follower_id, "following_id": following_id},
                columns="id",
            )
            return FollowStatus(is_following=row is not None)
        except Exception as e:
            logger.error(f"Error checking follow status: {e}")
            return FollowStatus(is_following=False, error=str(e))

    async def get_follow_stats(self, user_id: str) -> FollowStats:
        """Inbound and outbound edge counts

        The two counts are read concurrently; a side that fails counts as 0.
        """
        if not user_id:
            return FollowStats()

        followers_result, following_result = await asyncio.gather(
            self.db.count(TABLE, {"following_id": user_id}),
            self.db.count(TABLE, {"follower_id": user_id}),
            return_exceptions=True,
        )

        if isinstance(followers_result, Exception):
            logger.error(f"Error fetching followers count: {followers_result}")
            followers_result = 0

        if isinstance(following_result, Exception):
            logger.error(f"Error fetching following count: {following_result}")
            following_result = 0

        return FollowStats(followers_count=followers_result, following_count=following_result)

    async def get_following_ids(self, user_id: str) -> Set[str]:
        """IDs user_id follows. Empty on failure."""
        return await self._edge_ids(user_id, "follower_id", "following_id")

    async def get_follower_ids(self, user_id: str) -> Set[str]:
        """IDs following user_id. Empty on failure."""
        return await self._edge_ids(user_id, "following_id", "follower_id")

    async def get_mutual_follow_count(self, viewer_id: str, other_id: str) -> MutualCount:
        """
        Approximate "shared network" between two users

        Counts the users both viewer_id and other_id follow. This is a
        follow-set intersection, not an intersection of accepted
        connections.
        """
        if not viewer_id or not other_id:
            return MutualCount()

        try:
            viewer_following, other_following = await asyncio.gather(
                self._edge_ids(viewer_id, "follower_id", "following_id", strict=True),
                self._edge_ids(other_id, "follower_id", "following_id", strict=True),
            )
        except StoreError as e:
            logger.error(f"Error computing mutual follows: {e}")
            return MutualCount(count=0, error=str(e))

        return MutualCount(count=len(viewer_following & other_following))

    async def _edge_ids(
        self, user_id: str, match_column: str, id_column: str, strict: bool = False
    ) -> Set[str]:
        if not user_id:
            return set()

        try:
            rows = await self.db.select_many(
                TABLE, {match_column: user_id}, columns=id_column
            )
        except StoreError as e:
            if strict:
                raise
            logger.error(f"Error fetching {id_column} list for {user_id}: {e}")
            return set()

        return {str(row[id_column]) for row in rows if row.get(id_column)}

    def _broadcast(self, action: str, follower_id: str, following_id: str):
        self.events.publish(
            FollowEvent(
                action=action,
                follower_id=follower_id,
                following_id=following_id,
                timestamp=int(time.time() * 1000),
            )
        )
