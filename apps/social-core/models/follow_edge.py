from pydantic import BaseModel, model_validator
from typing import Literal, Optional
from datetime import datetime


class FollowEdge(BaseModel):
    """Directed "follows" relationship (row in `followers`)"""
    id: Optional[str] = None
    follower_id: str
    following_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        coerce_numbers_to_str = True

    @model_validator(mode="after")
    def _no_self_follow(self):
        if self.follower_id == self.following_id:
            raise ValueError("follower_id and following_id must differ")
        return self


class FollowEvent(BaseModel):
    """Broadcast after a successful follow or unfollow"""
    action: Literal["follow", "unfollow"]
    follower_id: str
    following_id: str
    timestamp: int  # Milliseconds since epoch
