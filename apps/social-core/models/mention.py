from pydantic import BaseModel
from typing import Literal, Optional


MentionType = Literal["user", "organization"]


class MentionCandidate(BaseModel):
    """One row of the @-mention dropdown. Built per query, never stored."""
    id: str
    name: str
    type: MentionType
    avatar_url: Optional[str] = None
    descriptor: str = ""


class MentionNode(BaseModel):
    """Snapshot embedded in the document when a candidate is chosen"""
    id: str
    label: str
    type: MentionType
