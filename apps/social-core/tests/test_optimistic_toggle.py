"""
Test suite for the optimistic toggle helper
"""

import asyncio
import pytest
from models.actor import Actor
from models.results import ErrorCode, MutationResult
from processors.optimistic_toggle import OptimisticMutation, RelationshipToggle, ToggleOutcome
from utils.session import SessionContext


class ScriptedRemote:
    """Remote call whose results are queued up by the test"""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.gate = None

    async def __call__(self, viewer_id, target_id):
        self.calls.append((viewer_id, target_id))
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if self.results else MutationResult.ok()
        if isinstance(result, Exception):
            raise result
        return result


def failure():
    return MutationResult.fail(ErrorCode.STORE_ERROR, "network down")


@pytest.fixture
def session():
    return SessionContext(Actor(id="user-ada", full_name="Ada Okafor"))


def make_toggle(session, activate, deactivate, initial=()):
    async def load_ids(viewer_id):
        return set(initial)

    return RelationshipToggle(session, load_ids, activate, deactivate)


@pytest.mark.asyncio
class TestOptimisticMutation:

    async def test_applied_state_is_visible_before_remote_completes(self):
        state = {"x": 1}
        seen_during_remote = []

        async def remote(key, before):
            seen_during_remote.append(state[key])
            return MutationResult.ok()

        mutation = OptimisticMutation(
            snapshot=lambda key: state[key],
            apply=lambda key, before: state.__setitem__(key, before + 1),
            remote=remote,
            revert=lambda key, before: state.__setitem__(key, before),
        )

        outcome = await mutation.run("x")

        assert outcome == ToggleOutcome.APPLIED
        assert seen_during_remote == [2]
        assert state["x"] == 2

    async def test_failure_restores_snapshot(self):
        state = {"x": 1}

        async def remote(key, before):
            return failure()

        mutation = OptimisticMutation(
            snapshot=lambda key: state[key],
            apply=lambda key, before: state.__setitem__(key, 99),
            remote=remote,
            revert=lambda key, before: state.__setitem__(key, before),
        )

        assert await mutation.run("x") == ToggleOutcome.REVERTED
        assert state["x"] == 1
        assert mutation.in_flight == set()


@pytest.mark.asyncio
class TestRelationshipToggle:

    async def test_load_seeds_active_ids(self, session):
        toggle = make_toggle(session, ScriptedRemote(), ScriptedRemote(), initial={"user-john"})

        await toggle.load()

        assert toggle.is_active("user-john") is True
        assert toggle.is_active("user-maria") is False

    async def test_toggle_on_then_off(self, session):
        activate, deactivate = ScriptedRemote(), ScriptedRemote()
        toggle = make_toggle(session, activate, deactivate)

        assert await toggle.toggle("user-john") == ToggleOutcome.APPLIED
        assert toggle.is_active("user-john") is True

        assert await toggle.toggle("user-john") == ToggleOutcome.APPLIED
        assert toggle.is_active("user-john") is False

        assert activate.calls == [("user-ada", "user-john")]
        assert deactivate.calls == [("user-ada", "user-john")]

    async def test_failed_activate_rolls_back_exactly(self, session):
        toggle = make_toggle(session, ScriptedRemote(failure()), ScriptedRemote(), {"user-maria"})
        await toggle.load()
        before = set(toggle.active_ids)

        outcome = await toggle.toggle("user-john")

        assert outcome == ToggleOutcome.REVERTED
        assert toggle.active_ids == before

    async def test_failed_deactivate_rolls_back(self, session):
        toggle = make_toggle(session, ScriptedRemote(), ScriptedRemote(failure()), {"user-john"})
        await toggle.load()

        outcome = await toggle.toggle("user-john")

        assert outcome == ToggleOutcome.REVERTED
        assert toggle.is_active("user-john") is True

    async def test_exception_rolls_back(self, session):
        toggle = make_toggle(session, ScriptedRemote(RuntimeError("boom")), ScriptedRemote())

        outcome = await toggle.toggle("user-john")

        assert outcome == ToggleOutcome.REVERTED
        assert toggle.is_active("user-john") is False
        assert toggle.in_flight == frozenset()

    async def test_second_toggle_while_in_flight_is_ignored(self, session):
        activate = ScriptedRemote()
        activate.gate = asyncio.Event()
        toggle = make_toggle(session, activate, ScriptedRemote())

        first = asyncio.create_task(toggle.toggle("user-john"))
        await asyncio.sleep(0)

        assert toggle.is_pending("user-john") is True
        assert toggle.is_active("user-john") is True
        assert await toggle.toggle("user-john") == ToggleOutcome.SKIPPED

        activate.gate.set()
        assert await first == ToggleOutcome.APPLIED
        assert len(activate.calls) == 1
        assert toggle.is_pending("user-john") is False
        assert toggle.is_active("user-john") is True

    async def test_failure_on_one_id_leaves_other_ids_alone(self, session):
        activate = ScriptedRemote(failure(), MutationResult.ok())
        activate.gate = asyncio.Event()
        toggle = make_toggle(session, activate, ScriptedRemote())

        first = asyncio.create_task(toggle.toggle("user-john"))
        second = asyncio.create_task(toggle.toggle("user-maria"))
        await asyncio.sleep(0)
        activate.gate.set()

        assert await first == ToggleOutcome.REVERTED
        assert await second == ToggleOutcome.APPLIED
        assert toggle.active_ids == {"user-maria"}

    async def test_anonymous_viewer_is_skipped(self):
        activate = ScriptedRemote()
        toggle = make_toggle(SessionContext(), activate, ScriptedRemote())

        assert await toggle.toggle("user-john") == ToggleOutcome.SKIPPED
        assert activate.calls == []
        assert toggle.active_ids == set()


@pytest.mark.asyncio
class TestToggleWithServices:

    async def test_follow_toggle_against_service(self, session, follow_service, db):
        toggle = RelationshipToggle.for_follows(follow_service, session)
        await toggle.load()

        assert await toggle.toggle("user-john") == ToggleOutcome.APPLIED
        assert len(db.rows("followers", follower_id="user-ada", following_id="user-john")) == 1

        assert await toggle.toggle("user-john") == ToggleOutcome.APPLIED
        assert db.rows("followers") == []

    async def test_self_follow_is_reverted(self, session, follow_service):
        toggle = RelationshipToggle.for_follows(follow_service, session)

        assert await toggle.toggle("user-ada") == ToggleOutcome.REVERTED
        assert toggle.is_active("user-ada") is False

    async def test_store_failure_is_reverted(self, session, follow_service, db):
        db.fail("insert", "followers")
        toggle = RelationshipToggle.for_follows(follow_service, session)

        assert await toggle.toggle("user-john") == ToggleOutcome.REVERTED
        assert toggle.active_ids == set()

    async def test_connection_toggle_sends_and_withdraws(self, session, connection_service, db):
        toggle = RelationshipToggle.for_connections(connection_service, session)
        await toggle.load()

        await toggle.toggle("user-john")
        assert db.rows("user_connections", requester_id="user-ada")[0]["status"] == "pending"

        await toggle.load()
        assert toggle.is_active("user-john") is True

        await toggle.toggle("user-john")
        assert db.rows("user_connections") == []

    async def test_watch_marks_view_stale(self, session, follow_service, event_bus):
        following_page = RelationshipToggle.for_follows(follow_service, session)
        directory = RelationshipToggle.for_follows(follow_service, session)
        await following_page.load()
        await directory.load()
        stop = following_page.watch(event_bus)

        await directory.toggle("user-john")

        assert following_page.stale is True
        await following_page.refresh_if_stale()
        assert following_page.stale is False
        assert following_page.is_active("user-john") is True

        stop()
        await directory.toggle("user-john")
        assert following_page.stale is False

    async def test_watch_ignores_unrelated_events(self, session, follow_service, event_bus):
        view = RelationshipToggle.for_follows(follow_service, session)
        view.watch(event_bus)

        await follow_service.follow_user("user-john", "user-maria")

        assert view.stale is False


@pytest.mark.asyncio
class TestToggleDuringLoad:
    """A toggle that lands while load() is reading must survive the reload"""

    def make_view(self, session, store):
        gate = asyncio.Event()

        async def load_ids(viewer_id):
            snapshot = set(store)  # Read happens before the toggle reaches the store
            await gate.wait()
            return snapshot

        async def activate(viewer_id, target_id):
            store.add(target_id)
            return MutationResult.ok()

        async def deactivate(viewer_id, target_id):
            store.discard(target_id)
            return MutationResult.ok()

        return RelationshipToggle(session, load_ids, activate, deactivate), gate

    async def test_activate_during_load_is_kept(self, session):
        store = set()
        view, gate = self.make_view(session, store)

        loading = asyncio.create_task(view.load())
        await asyncio.sleep(0)
        assert await view.toggle("user-john") == ToggleOutcome.APPLIED
        gate.set()
        await loading

        assert store == {"user-john"}
        assert view.active_ids == store

    async def test_deactivate_during_load_is_kept(self, session):
        store = {"user-john", "user-maria"}
        view, gate = self.make_view(session, store)
        gate.set()
        await view.load()
        gate.clear()

        loading = asyncio.create_task(view.load())
        await asyncio.sleep(0)
        await view.toggle("user-john")
        gate.set()
        await loading

        assert view.active_ids == store == {"user-maria"}

    async def test_untouched_ids_take_fetched_value(self, session):
        store = {"user-sam"}
        view, gate = self.make_view(session, store)
        view.active_ids = {"user-kim"}  # Out of date local state

        loading = asyncio.create_task(view.load())
        await asyncio.sleep(0)
        await view.toggle("user-john")
        gate.set()
        await loading

        assert view.active_ids == {"user-sam", "user-john"}

    async def test_failed_toggle_during_load_matches_store(self, session):
        store = set()
        gate = asyncio.Event()

        async def load_ids(viewer_id):
            snapshot = set(store)
            await gate.wait()
            return snapshot

        async def activate(viewer_id, target_id):
            return failure()

        view = RelationshipToggle(session, load_ids, activate, ScriptedRemote())

        loading = asyncio.create_task(view.load())
        await asyncio.sleep(0)
        assert await view.toggle("user-john") == ToggleOutcome.REVERTED
        gate.set()
        await loading

        assert view.active_ids == set()
