from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    NEW_FOLLOWER = "new_follower"
    CONNECTION_REQUEST = "connection_request"
    CONNECTION_ACCEPTED = "connection_accepted"
    MENTION = "mention"


class Notification(BaseModel):
    id: Optional[str] = None
    user_id: str  # Recipient
    actor_id: str
    type: str
    is_read: bool = False
    post_id: Optional[str] = None
    connection_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        coerce_numbers_to_str = True

    @model_validator(mode="after")
    def _no_self_notification(self):
        if self.user_id == self.actor_id:
            raise ValueError("a user cannot be notified about their own action")
        return self

    def to_row(self) -> dict:
        """Insert payload: optional references are left out when unset"""
        return self.model_dump(exclude_none=True, mode="json")


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    read: int = 0
    recent: int = 0  # Created within the last NOTIFICATION_RECENT_DAYS days
    error: Optional[str] = None
