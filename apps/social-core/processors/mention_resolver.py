from services.database import DatabaseService
from models.actor import Actor, PROFILE_SUMMARY_COLUMNS
from models.organization import Organization
from models.mention import MentionCandidate, MentionNode
from utils.session import SessionContext
from config import settings
from pydantic import ValidationError
from typing import List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

PROFILE_SEARCH_FIELDS = ("full_name", "title", "organization_name")
ORGANIZATION_COLUMNS = "id, name, type, tagline, image_url, slug"


class MentionResolver:
    """Resolves the text typed after '@' into mention candidates

    - empty query: people the viewer already follows
    - shorter than the minimum length: nothing
    - otherwise: substring search over profiles, then organizations
    """

    def __init__(
        self,
        db: DatabaseService,
        session: SessionContext,
        default_limit: int = None,
        search_limit: int = None,
        min_query_length: int = None,
    ):
        self.db = db
        self.session = session
        self.default_limit = settings.MENTION_DEFAULT_LIMIT if default_limit is None else default_limit
        self.search_limit = settings.MENTION_SEARCH_LIMIT if search_limit is None else search_limit
        self.min_query_length = (
            settings.MENTION_MIN_QUERY_LENGTH if min_query_length is None else min_query_length
        )

    async def resolve(self, query: Optional[str]) -> List[MentionCandidate]:
        """Candidates for query: users first, then organizations"""
        term = (query or "").strip()

        if not term:
            return await self._following_defaults()

        if len(term) < self.min_query_length:
            return []

        users, organizations = await asyncio.gather(
            self._search_profiles(term), self._search_organizations(term)
        )
        return self._dedupe(users + organizations)

    @staticmethod
    def select(candidate: MentionCandidate) -> MentionNode:
        """Snapshot a chosen candidate for embedding in the document"""
        return MentionNode(id=candidate.id, label=candidate.name, type=candidate.type)

    async def _following_defaults(self) -> List[MentionCandidate]:
        viewer_id = self.session.user_id
        if not viewer_id:
            return []

        try:
            edges = await self.db.select_many(
                "followers",
                {"follower_id": viewer_id},
                columns="following_id",
                limit=self.default_limit,
            )
            ids = [str(edge["following_id"]) for edge in edges if edge.get("following_id")]
            if not ids:
                return []

            rows = await self.db.select_many(
                "profiles", columns=PROFILE_SUMMARY_COLUMNS, in_=("id", ids)
            )
        except Exception as e:
            logger.error(f"Error fetching following for mention suggestions: {e}")
            return []

        # Keep the order the follow edges came back in
        by_id = {str(row["id"]): row for row in rows}
        return self._user_candidates([by_id[i] for i in ids if i in by_id])

    async def _search_profiles(self, term: str) -> List[MentionCandidate]:
        try:
            rows = await self.db.select_many(
                "profiles",
                columns=PROFILE_SUMMARY_COLUMNS,
                ilike_any=(PROFILE_SEARCH_FIELDS, term),
                limit=self.search_limit,
            )
        except Exception as e:
            logger.error(f"Error searching profiles: {e}")
            return []

        return self._user_candidates(rows[: self.search_limit])

    async def _search_organizations(self, term: str) -> List[MentionCandidate]:
        try:
            rows = await self.db.select_many(
                "organizations",
                columns=ORGANIZATION_COLUMNS,
                ilike_any=(("name",), term),
                limit=self.search_limit,
            )
        except Exception as e:
            logger.error(f"Error searching organizations: {e}")
            return []

        candidates = []
        for row in rows[: self.search_limit]:
            try:
                org = Organization(**row)
            except ValidationError as e:
                logger.warning(f"Skipping malformed organization row: {e}")
                continue

            candidates.append(
                MentionCandidate(
                    id=org.mention_id,
                    name=org.name,
                    type="organization",
                    avatar_url=org.image_url,
                    descriptor=org.tagline or f"{org.type_label} Organization",
                )
            )
        return candidates

    @staticmethod
    def _user_candidates(rows: List[dict]) -> List[MentionCandidate]:
        candidates = []
        for row in rows:
            try:
                actor = Actor(**row)
            except ValidationError as e:
                logger.warning(f"Skipping malformed profile row: {e}")
                continue

            candidates.append(
                MentionCandidate(
                    id=actor.id,
                    name=actor.full_name,
                    type="user",
                    avatar_url=actor.avatar_url,
                    descriptor=_describe_actor(actor),
                )
            )
        return candidates

    @staticmethod
    def _dedupe(candidates: List[MentionCandidate]) -> List[MentionCandidate]:
        seen = set()
        unique = []
        for candidate in candidates:
            key = (candidate.type, candidate.id)
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique


def _describe_actor(actor: Actor) -> str:
    if actor.title and actor.organization_name:
        return f"{actor.title} at {actor.organization_name}"
    return actor.title or actor.organization_name or "User"
