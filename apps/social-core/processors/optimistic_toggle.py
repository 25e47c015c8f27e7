"""
Optimistic toggles for lists of relationship-bearing entities

Each mounted view (member directory, followers page, following page) keeps
its own RelationshipToggle. A toggle flips local state at once, then calls
the social graph service; if the call fails, that id's local state is put
back exactly as it was before the attempt. One remote call per id can be
in flight at a time.
"""

from models.results import MutationResult
from models.follow_edge import FollowEvent
from utils.session import SessionContext
from typing import Awaitable, Callable, Generic, Iterable, List, Set, TypeVar
from enum import Enum
import logging

logger = logging.getLogger(__name__)

S = TypeVar("S")


class ToggleOutcome(str, Enum):
    APPLIED = "applied"  # Remote call succeeded, optimistic state kept
    REVERTED = "reverted"  # Remote call failed, pre-attempt state restored
    SKIPPED = "skipped"  # Rejected before anything changed


class OptimisticMutation(Generic[S]):
    """
    Apply-then-confirm mutation with exact rollback, keyed by target id

    Args:
        snapshot: key -> current local state for that key
        apply: (key, snapshot) -> None, the synchronous optimistic update
        remote: (key, snapshot) -> awaitable MutationResult
        revert: (key, snapshot) -> None, restores the snapshot
    """

    def __init__(
        self,
        snapshot: Callable[[str], S],
        apply: Callable[[str, S], None],
        remote: Callable[[str, S], Awaitable[MutationResult]],
        revert: Callable[[str, S], None],
    ):
        self.snapshot = snapshot
        self.apply = apply
        self.remote = remote
        self.revert = revert
        self.in_flight: Set[str] = set()

    async def run(self, key: str) -> ToggleOutcome:
        if key in self.in_flight:
            logger.debug(f"Mutation for {key} already in flight, ignoring")
            return ToggleOutcome.SKIPPED

        before = self.snapshot(key)
        self.apply(key, before)
        self.in_flight.add(key)

        try:
            result = await self.remote(key, before)
            if not result.success:
                logger.warning(f"Remote mutation for {key} failed: {result.error}")
                self.revert(key, before)
                return ToggleOutcome.REVERTED
            return ToggleOutcome.APPLIED
        except Exception as e:
            logger.error(f"Error during remote mutation for {key}: {e}", exc_info=True)
            self.revert(key, before)
            return ToggleOutcome.REVERTED
        finally:
            self.in_flight.discard(key)


class RelationshipToggle:
    """Per-view cache of which targets the viewer has an active relationship with

    `active_ids` is seeded by load() from a bulk read and then changed only
    through toggle(). Ids toggled while a load is reading (or still in flight
    when it started) keep their local value; the read may predate them.
    """

    def __init__(
        self,
        session: SessionContext,
        load_ids: Callable[[str], Awaitable[Iterable[str]]],
        activate: Callable[[str, str], Awaitable[MutationResult]],
        deactivate: Callable[[str, str], Awaitable[MutationResult]],
    ):
        self.session = session
        self.active_ids: Set[str] = set()
        self.stale = False
        self._load_ids = load_ids
        self._activate = activate
        self._deactivate = deactivate
        self._loads: List[Set[str]] = []  # Ids touched during each running load
        self._mutation = OptimisticMutation(
            snapshot=self._snapshot,
            apply=self._apply,
            remote=self._remote,
            revert=self._revert,
        )

    @classmethod
    def for_follows(cls, follow_service, session: SessionContext) -> "RelationshipToggle":
        """Follow/unfollow buttons"""
        return cls(
            session,
            follow_service.get_following_ids,
            follow_service.follow_user,
            follow_service.unfollow_user,
        )

    @classmethod
    def for_connections(cls, connection_service, session: SessionContext) -> "RelationshipToggle":
        """Connect/withdraw buttons; active means a pending outbound request"""
        return cls(
            session,
            connection_service.get_outgoing_request_ids,
            connection_service.send_connection_request,
            connection_service.withdraw_connection_request,
        )

    @property
    def in_flight(self) -> frozenset:
        return frozenset(self._mutation.in_flight)

    def is_active(self, target_id: str) -> bool:
        return target_id in self.active_ids

    def is_pending(self, target_id: str) -> bool:
        return target_id in self._mutation.in_flight

    async def load(self):
        """Full re-fetch of the relationship state for the viewer"""
        viewer_id = self.session.user_id
        touched = set(self._mutation.in_flight)
        self._loads.append(touched)
        try:
            fetched = set(await self._load_ids(viewer_id)) if viewer_id else set()
        finally:
            self._loads.remove(touched)

        for target_id in touched:
            if target_id in self.active_ids:
                fetched.add(target_id)
            else:
                fetched.discard(target_id)
        self.active_ids = fetched
        self.stale = False

    async def refresh_if_stale(self):
        if self.stale and not self._mutation.in_flight:
            await self.load()

    async def toggle(self, target_id: str) -> ToggleOutcome:
        if not self.session.user_id or not target_id:
            return ToggleOutcome.SKIPPED
        return await self._mutation.run(target_id)

    def watch(self, bus) -> Callable[[], None]:
        """Mark this view stale when another view changes the viewer's follows

        Returns:
            Callable that stops watching
        """
        def on_event(event: FollowEvent):
            viewer_id = self.session.user_id
            if viewer_id and viewer_id in (event.follower_id, event.following_id):
                self.stale = True

        return bus.subscribe(on_event)

    def _snapshot(self, target_id: str) -> bool:
        return target_id in self.active_ids

    def _apply(self, target_id: str, was_active: bool):
        for touched in self._loads:
            touched.add(target_id)
        if was_active:
            self.active_ids.discard(target_id)
        else:
            self.active_ids.add(target_id)

    async def _remote(self, target_id: str, was_active: bool) -> MutationResult:
        action = self._deactivate if was_active else self._activate
        return await action(self.session.user_id, target_id)

    def _revert(self, target_id: str, was_active: bool):
        if was_active:
            self.active_ids.add(target_id)
        else:
            self.active_ids.discard(target_id)
