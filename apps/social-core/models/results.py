"""
Result records returned by the social graph services.

Expected failures are returned, never raised, so every caller has to
branch on `success`.
"""

from pydantic import BaseModel
from typing import Optional
from enum import Enum


class ErrorCode(str, Enum):
    MISSING_IDENTIFIER = "missing_identifier"
    SELF_FOLLOW = "self_follow"
    ALREADY_FOLLOWING = "already_following"
    SELF_CONNECTION = "self_connection"
    ALREADY_CONNECTED = "already_connected"
    REQUEST_PENDING = "request_pending"
    REQUEST_NOT_FOUND = "request_not_found"
    NOT_PERMITTED = "not_permitted"
    STORE_ERROR = "store_error"


class MutationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls) -> "MutationResult":
        return cls(success=True)

    @classmethod
    def fail(cls, code: ErrorCode, error: str) -> "MutationResult":
        return cls(success=False, code=code, error=error)


class FollowStatus(BaseModel):
    is_following: bool = False
    error: Optional[str] = None


class FollowStats(BaseModel):
    followers_count: int = 0
    following_count: int = 0


class MutualCount(BaseModel):
    count: int = 0
    error: Optional[str] = None
