# Models module - Pydantic models for all social tables and results
from models.actor import Actor
from models.organization import Organization, ORGANIZATION_TYPE_LABELS
from models.follow_edge import FollowEdge, FollowEvent
from models.connection import (
    ConnectionRequest,
    ConnectionState,
    ConnectionStatus,
    ConnectionSummary,
    PendingRequest,
)
from models.notification import Notification, NotificationStats, NotificationType
from models.mention import MentionCandidate, MentionNode
from models.results import ErrorCode, MutationResult, FollowStatus, FollowStats, MutualCount

__all__ = [
    "Actor",
    "Organization",
    "ORGANIZATION_TYPE_LABELS",
    "FollowEdge",
    "FollowEvent",
    "ConnectionRequest",
    "ConnectionState",
    "ConnectionStatus",
    "ConnectionSummary",
    "PendingRequest",
    "Notification",
    "NotificationType",
    "NotificationStats",
    "MentionCandidate",
    "MentionNode",
    "ErrorCode",
    "MutationResult",
    "FollowStatus",
    "FollowStats",
    "MutualCount",
]
