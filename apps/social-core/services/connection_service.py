"""
ConnectionService: connection-request state machine

A connection is undirected once accepted, but it is stored as one directed
row (requester -> recipient). Status per unordered pair:

    none -> pending      send_connection_request (either side, if no row)
    pending -> accepted  accept_connection_request (recipient only)
    pending -> declined  decline_connection_request (recipient only)
    pending -> none      withdraw_connection_request (requester only)
    accepted -> none     remove_connection (either party)
    declined -> pending  send_connection_request (re-opened, new orientation)
"""

from services.database import DatabaseService, StoreError
from services.notification_service import NotificationService
from services.follow_service import FollowService
from models.actor import Actor, PROFILE_SUMMARY_COLUMNS, unknown_actor
from models.connection import (
    ConnectionRequest,
    ConnectionState,
    ConnectionStatus,
    ConnectionSummary,
    PendingRequest,
)
from models.notification import NotificationType
from models.results import ErrorCode, MutationResult, MutualCount
from config import settings
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple
import asyncio
import logging

logger = logging.getLogger(__name__)

TABLE = "user_connections"
COLUMNS = "id, status, requester_id, recipient_id, created_at, updated_at"


class ConnectionService:
    """Applies connection-request transitions against `user_connections`"""

    def __init__(
        self,
        db: DatabaseService,
        notifications: Optional[NotificationService] = None,
        follows: Optional[FollowService] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.follows = follows or FollowService(db, notifications=self.notifications)

    # ==================== STATUS ====================

    async def get_connection_status(self, viewer_id: str, other_id: str) -> ConnectionState:
        """Status of the pair as seen by viewer_id"""
        if not viewer_id or not other_id:
            return ConnectionState()

        try:
            row = await self._find_pair(viewer_id, other_id)
        except Exception as e:
            logger.error(f"Error fetching connection status: {e}")
            return ConnectionState(error=str(e))

        return self._state_for(row, viewer_id)

    # ==================== TRANSITIONS ====================

    async def send_connection_request(self, requester_id: str, recipient_id: str) -> MutationResult:
        """none -> pending (or declined -> pending)"""
        if not requester_id or not recipient_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both requester and recipient IDs are required"
            )

        if requester_id == recipient_id:
            return MutationResult.fail(ErrorCode.SELF_CONNECTION, "Cannot connect to yourself")

        try:
            existing = await self._find_pair(requester_id, recipient_id)

            if existing and existing.status == ConnectionStatus.ACCEPTED:
                return MutationResult.fail(ErrorCode.ALREADY_CONNECTED, "Already connected")
            if existing and existing.status == ConnectionStatus.PENDING:
                return MutationResult.fail(
                    ErrorCode.REQUEST_PENDING, "Connection request already sent"
                )

            if existing:
                # Declined: re-open the same row, oriented from the new requester
                await self.db.update(
                    TABLE,
                    {"requester_id": existing.requester_id, "recipient_id": existing.recipient_id},
                    {
                        "requester_id": requester_id,
                        "recipient_id": recipient_id,
                        "status": ConnectionStatus.PENDING.value,
                        "updated_at": _now(),
                    },
                )
                connection_id = existing.id
            else:
                stored = await self.db.insert(
                    TABLE,
                    {
                        "requester_id": requester_id,
                        "recipient_id": recipient_id,
                        "status": ConnectionStatus.PENDING.value,
                    },
                )
                connection_id = stored.get("id")
        except Exception as e:
            return self._store_failure("send_connection_request", e)

        await self._notify(
            recipient_id, requester_id, NotificationType.CONNECTION_REQUEST, connection_id
        )
        logger.info(f"Connection request {requester_id} -> {recipient_id}")
        return MutationResult.ok()

    async def accept_connection_request(self, recipient_id: str, requester_id: str) -> MutationResult:
        """pending -> accepted. Only the recipient of the request can accept."""
        result, connection_id = await self._answer_request(
            recipient_id, requester_id, ConnectionStatus.ACCEPTED
        )
        if result.success:
            # The accepting user is the actor; the requester is notified
            await self._notify(
                requester_id, recipient_id, NotificationType.CONNECTION_ACCEPTED, connection_id
            )
        return result

    async def decline_connection_request(self, recipient_id: str, requester_id: str) -> MutationResult:
        """pending -> declined. Only the recipient of the request can decline."""
        result, _ = await self._answer_request(
            recipient_id, requester_id, ConnectionStatus.DECLINED
        )
        return result

    async def withdraw_connection_request(self, requester_id: str, recipient_id: str) -> MutationResult:
        """pending -> none. Only the original requester can withdraw."""
        if not requester_id or not recipient_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both requester and recipient IDs are required"
            )

        match = {
            "requester_id": requester_id,
            "recipient_id": recipient_id,
            "status": ConnectionStatus.PENDING.value,
        }

        try:
            pending = await self.db.select_one(TABLE, match, columns="id")
            if not pending:
                return MutationResult.fail(
                    ErrorCode.REQUEST_NOT_FOUND, "No pending request to withdraw"
                )
            await self.db.delete(TABLE, match)
        except Exception as e:
            return self._store_failure("withdraw_connection_request", e)

        logger.info(f"Connection request {requester_id} -> {recipient_id} withdrawn")
        return MutationResult.ok()

    async def remove_connection(self, user_id: str, other_id: str) -> MutationResult:
        """accepted -> none. Either party can disconnect."""
        if not user_id or not other_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both user IDs are required"
            )

        try:
            existing = await self._find_pair(user_id, other_id)
            if not existing or existing.status != ConnectionStatus.ACCEPTED:
                return MutationResult.fail(ErrorCode.NOT_PERMITTED, "Not connected")

            await asyncio.gather(
                self.db.delete(TABLE, {"requester_id": user_id, "recipient_id": other_id}),
                self.db.delete(TABLE, {"requester_id": other_id, "recipient_id": user_id}),
            )
        except Exception as e:
            return self._store_failure("remove_connection", e)

        logger.info(f"Connection between {user_id} and {other_id} removed")
        return MutationResult.ok()

    # ==================== READS ====================

    async def get_mutual_connections_count(self, viewer_id: str, other_id: str) -> MutualCount:
        # Shared network is approximated by the follow graph
        return await self.follows.get_mutual_follow_count(viewer_id, other_id)

    async def get_user_connections(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[ConnectionSummary]:
        """Accepted connections of user_id, newest first, with counterpart profiles"""
        if not user_id:
            return []
        if limit is None:
            limit = settings.CONNECTIONS_PAGE_SIZE

        try:
            as_requester, as_recipient = await asyncio.gather(
                self._select_rows({"requester_id": user_id, "status": "accepted"}, limit),
                self._select_rows({"recipient_id": user_id, "status": "accepted"}, limit),
            )
            rows = sorted(
                as_requester + as_recipient,
                key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc),
                reverse=True,
            )[:limit]
            profiles = await self._profiles_by_id([r.counterpart_of(user_id) for r in rows])
        except Exception as e:
            logger.error(f"Error fetching connections for {user_id}: {e}")
            return []

        return [
            ConnectionSummary(
                id=row.id,
                user=profiles.get(row.counterpart_of(user_id))
                or unknown_actor(row.counterpart_of(user_id)),
                connected_at=row.created_at,
            )
            for row in rows
        ]

    async def get_pending_requests(self, user_id: str) -> List[PendingRequest]:
        """Inbound pending requests for user_id, newest first"""
        if not user_id:
            return []

        try:
            rows = await self._select_rows(
                {"recipient_id": user_id, "status": "pending"}, limit=None
            )
            profiles = await self._profiles_by_id([r.requester_id for r in rows])
        except Exception as e:
            logger.error(f"Error fetching pending requests for {user_id}: {e}")
            return []

        return [
            PendingRequest(
                id=row.id,
                requester=profiles.get(row.requester_id) or unknown_actor(row.requester_id),
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def get_outgoing_request_ids(self, user_id: str) -> Set[str]:
        """Recipients of user_id's pending requests. Empty on failure."""
        if not user_id:
            return set()

        try:
            rows = await self.db.select_many(
                TABLE,
                {"requester_id": user_id, "status": ConnectionStatus.PENDING.value},
                columns="recipient_id",
            )
        except StoreError as e:
            logger.error(f"Error fetching outgoing requests for {user_id}: {e}")
            return set()

        return {str(row["recipient_id"]) for row in rows if row.get("recipient_id")}

    # ==================== HELPERS ====================

    async def _find_pair(self, user_a: str, user_b: str) -> Optional[ConnectionRequest]:
        """The pair's row in whichever orientation it was stored"""
        forward, backward = await asyncio.gather(
            self.db.select_one(TABLE, {"requester_id": user_a, "recipient_id": user_b}, columns=COLUMNS),
            self.db.select_one(TABLE, {"requester_id": user_b, "recipient_id": user_a}, columns=COLUMNS),
        )
        row = forward or backward
        return ConnectionRequest(**row) if row else None

    @staticmethod
    def _state_for(row: Optional[ConnectionRequest], viewer_id: str) -> ConnectionState:
        if not row:
            return ConnectionState()
        return ConnectionState(status=row.status, is_requester=row.requester_id == viewer_id)

    async def _answer_request(
        self, recipient_id: str, requester_id: str, new_status: ConnectionStatus
    ) -> Tuple[MutationResult, Optional[str]]:
        """Move a pending request to new_status, return (result, row id)"""
        if not recipient_id or not requester_id:
            return MutationResult.fail(
                ErrorCode.MISSING_IDENTIFIER, "Both requester and recipient IDs are required"
            ), None

        match = {
            "requester_id": requester_id,
            "recipient_id": recipient_id,
            "status": ConnectionStatus.PENDING.value,
        }

        try:
            pending = await self.db.select_one(TABLE, match, columns="id")
            if not pending:
                return MutationResult.fail(
                    ErrorCode.REQUEST_NOT_FOUND, "No pending request from this user"
                ), None
            await self.db.update(
                TABLE, match, {"status": new_status.value, "updated_at": _now()}
            )
        except Exception as e:
            return self._store_failure(f"{new_status.value} request", e), None

        logger.info(f"Connection request {requester_id} -> {recipient_id} {new_status.value}")
        connection_id = pending.get("id")
        return MutationResult.ok(), str(connection_id) if connection_id else None

    async def _select_rows(self, match: Dict[str, str], limit: Optional[int]) -> List[ConnectionRequest]:
        rows = await self.db.select_many(
            TABLE, match, columns=COLUMNS, order_by="created_at", desc=True, limit=limit
        )
        return [ConnectionRequest(**row) for row in rows]

    async def _profiles_by_id(self, ids: List[str]) -> Dict[str, Actor]:
        if not ids:
            return {}
        rows = await self.db.select_many(
            "profiles", columns=PROFILE_SUMMARY_COLUMNS, in_=("id", list(dict.fromkeys(ids)))
        )
        return {str(row["id"]): Actor(**row) for row in rows}

    async def _notify(
        self,
        user_id: str,
        actor_id: str,
        notification_type: NotificationType,
        connection_id: Optional[str],
    ):
        result = await self.notifications.create_notification(
            user_id, actor_id, notification_type.value, connection_id=connection_id
        )
        if not result.success:
            logger.warning(f"{notification_type.value} notification failed: {result.error}")

    @staticmethod
    def _store_failure(action: str, error: Exception) -> MutationResult:
        if isinstance(error, StoreError):
            logger.error(f"Store error in {action}: {error}")
        else:
            logger.error(f"Unexpected error in {action}: {error}", exc_info=True)
        return MutationResult.fail(ErrorCode.STORE_ERROR, str(error))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
