"""
NotificationService: derived notification records

Notifications are side effects of social actions. Creating one is always
best-effort from the caller's point of view; the only mutations after
creation are marking read, the recipient's bulk clears and the nightly
retention cleanup (see schedulers/notification_cleanup.py).
"""

from services.database import DatabaseService, StoreError
from models.notification import Notification, NotificationStats, NotificationType
from models.mention import MentionNode
from models.results import ErrorCode, MutationResult
from config import settings
from pydantic import TypeAdapter, ValidationError
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

TABLE = "notifications"

_TIMESTAMP = TypeAdapter(datetime)


class NotificationService:
    """Creates, lists and clears notifications for a recipient"""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def create_notification(
        self,
        user_id: str,
        actor_id: str,
        notification_type: str,
        post_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ) -> MutationResult:
        """Create a notification for user_id about actor_id's action

        Self-notifications are skipped and reported as success.
        """
        if not user_id or not actor_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both recipient and actor IDs are required"
            )

        if user_id == actor_id:
            return MutationResult.ok()

        try:
            notification = Notification(
                user_id=user_id,
                actor_id=actor_id,
                type=notification_type,
                post_id=post_id,
                connection_id=connection_id,
            )
            await self.db.insert(TABLE, notification.to_row())
            logger.info(f"Created {notification_type} notification for {user_id}")
            return MutationResult.ok()
        except StoreError as e:
            logger.error(f"Error creating {notification_type} notification: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))
        except Exception as e:
            logger.error(f"Unexpected error creating notification: {e}", exc_info=True)
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))

    async def create_mention_notifications(
        self, post_id: str, mentions: Iterable[MentionNode], actor_id: str
    ) -> int:
        """Notify each distinct mentioned user once, never the author

        Returns:
            Number of notifications created
        """
        processed = {actor_id}
        created = 0

        for mention in mentions:
            if mention.type != "user" or mention.id in processed:
                continue
            processed.add(mention.id)

            result = await self.create_notification(
                mention.id, actor_id, NotificationType.MENTION.value, post_id=post_id
            )
            if result.success:
                created += 1
            else:
                logger.warning(f"Mention notification for {mention.id} failed: {result.error}")

        return created

    async def list_notifications(self, user_id: str, limit: int = 50) -> List[Notification]:
        """Most recent notifications for user_id. Malformed rows are skipped."""
        try:
            rows = await self.db.select_many(
                TABLE, {"user_id": user_id}, order_by="created_at", desc=True, limit=limit
            )
        except StoreError as e:
            logger.error(f"Error listing notifications for {user_id}: {e}")
            return []

        notifications = []
        for row in rows:
            try:
                notifications.append(Notification(**row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed notification row {row.get('id')}: {e}")
        return notifications

    async def unread_count(self, user_id: str) -> int:
        try:
            return await self.db.count(TABLE, {"user_id": user_id, "is_read": False})
        except StoreError as e:
            logger.error(f"Error counting unread notifications for {user_id}: {e}")
            return 0

    async def mark_as_read(self, notification_id: str, user_id: str) -> MutationResult:
        """Mark one notification read. Scoped to the recipient."""
        return await self._update(
            {"id": notification_id, "user_id": user_id}, {"is_read": True}, "mark as read"
        )

    async def mark_all_as_read(self, user_id: str) -> MutationResult:
        return await self._update(
            {"user_id": user_id, "is_read": False}, {"is_read": True}, "mark all as read"
        )

    async def clear_all(self, user_id: str) -> MutationResult:
        """Delete every notification of user_id"""
        return await self._delete({"user_id": user_id}, "clear all")

    async def clear_read(self, user_id: str) -> MutationResult:
        """Delete only notifications user_id has already read"""
        return await self._delete({"user_id": user_id, "is_read": True}, "clear read")

    async def get_notification_stats(self, user_id: str) -> NotificationStats:
        """Totals for user_id's inbox, plus how many arrived recently"""
        if not user_id:
            return NotificationStats()

        try:
            rows = await self.db.select_many(
                TABLE, {"user_id": user_id}, columns="id, is_read, created_at"
            )
        except StoreError as e:
            logger.error(f"Error getting notification stats for {user_id}: {e}")
            return NotificationStats(error=str(e))

        recent_since = datetime.now(timezone.utc) - timedelta(days=settings.NOTIFICATION_RECENT_DAYS)
        unread = sum(1 for row in rows if not row.get("is_read"))
        recent = 0
        for row in rows:
            created_at = _parse_timestamp(row.get("created_at"))
            if created_at is None:
                logger.warning(f"Skipping notification {row.get('id')} with bad created_at")
            elif created_at > recent_since:
                recent += 1
        return NotificationStats(
            total=len(rows), unread=unread, read=len(rows) - unread, recent=recent
        )

    async def cleanup_old_notifications(self, days_old: Optional[int] = None) -> MutationResult:
        """
        Delete every notification older than days_old (all recipients)

        Args:
            days_old: Retention window, defaults to NOTIFICATION_RETENTION_DAYS
        """
        if days_old is None:
            days_old = settings.NOTIFICATION_RETENTION_DAYS
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)

        try:
            await self.db.delete_before(TABLE, "created_at", cutoff.isoformat())
        except StoreError as e:
            logger.error(f"Error in notification cleanup: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))

        logger.info(f"Cleaned up notifications older than {days_old} days")
        return MutationResult.ok()

    async def _update(self, match: dict, values: dict, action: str) -> MutationResult:
        if not match.get("user_id"):
            return MutationResult.fail(ErrorCode.MISSING_IDENTIFIER, "User ID is required")
        try:
            await self.db.update(TABLE, match, values)
            return MutationResult.ok()
        except StoreError as e:
            logger.error(f"Error in {action}: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))

    async def _delete(self, match: dict, action: str) -> MutationResult:
        if not match.get("user_id"):
            return MutationResult.fail(ErrorCode.MISSING_IDENTIFIER, "User ID is required")
        try:
            await self.db.delete(TABLE, match)
            logger.info(f"Notifications {action} for user {match['user_id']}")
            return MutationResult.ok()
        except StoreError as e:
            logger.error(f"Error in {action}: {e}")
            return MutationResult.fail(ErrorCode.STORE_ERROR, str(e))


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = _TIMESTAMP.validate_python(value)
    except ValidationError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
