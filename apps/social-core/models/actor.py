from pydantic import BaseModel
from typing import Optional


class Actor(BaseModel):
    """A member profile (row in `profiles`)"""
    id: str
    full_name: str
    avatar_url: Optional[str] = None
    title: Optional[str] = None
    organization_name: Optional[str] = None
    role: Optional[str] = None
    is_admin: bool = False

    class Config:
        from_attributes = True


# Columns fetched whenever a profile is shown next to a relationship
PROFILE_SUMMARY_COLUMNS = "id, full_name, avatar_url, title, organization_name, role"


def unknown_actor(actor_id: str) -> Actor:
    """Placeholder for a counterpart whose profile row is gone"""
    return Actor(id=actor_id, full_name="Unknown User")
