from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum
from models.actor import Actor


class ConnectionStatus(str, Enum):
    # NONE is never stored: it means no row exists for the pair
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ConnectionRequest(BaseModel):
    """Directed request behind an undirected connection (row in `user_connections`)"""
    id: Optional[str] = None
    requester_id: str
    recipient_id: str
    status: ConnectionStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        coerce_numbers_to_str = True

    def counterpart_of(self, user_id: str) -> str:
        return self.recipient_id if self.requester_id == user_id else self.requester_id


class ConnectionState(BaseModel):
    """Relationship status as seen by one of the two parties"""
    status: ConnectionStatus = ConnectionStatus.NONE
    is_requester: bool = False
    error: Optional[str] = None


class ConnectionSummary(BaseModel):
    """An accepted connection seen from one side, with the other party's profile"""
    id: Optional[str] = None
    user: Actor
    connected_at: Optional[datetime] = None


class PendingRequest(BaseModel):
    """An inbound pending request with the requester's profile"""
    id: Optional[str] = None
    requester: Actor
    created_at: Optional[datetime] = None
