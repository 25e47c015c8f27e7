"""
Test suite for DatabaseService query building, against a mocked Supabase client
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from services.database import DatabaseService, StoreError


def mock_client(data=None, count=None, error=None):
    """Client whose query builder returns itself from every filter call"""
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "or_", "in_", "order", "limit"):
        getattr(query, method).return_value = query

    if error:
        query.execute = AsyncMock(side_effect=error)
    else:
        query.execute = AsyncMock(return_value=MagicMock(data=data, count=count))

    client = MagicMock()
    client.table.return_value = query
    return client, query


@pytest.mark.asyncio
class TestDatabaseService:

    async def test_select_many_builds_filters(self):
        client, query = mock_client(data=[{"id": "user-john"}])
        db = DatabaseService(client)

        rows = await db.select_many(
            "profiles",
            {"role": "nonprofit"},
            columns="id, full_name",
            in_=("id", {"user-john"}),
            order_by="created_at",
            desc=True,
            limit=5,
        )

        assert rows == [{"id": "user-john"}]
        client.table.assert_called_with("profiles")
        query.select.assert_called_with("id, full_name")
        query.eq.assert_called_with("role", "nonprofit")
        query.in_.assert_called_with("id", ["user-john"])
        query.order.assert_called_with("created_at", desc=True)
        query.limit.assert_called_with(5)

    async def test_ilike_any_escapes_filter_separators(self):
        client, query = mock_client(data=[])
        db = DatabaseService(client)

        await db.select_many("profiles", ilike_any=(("full_name", "title"), " jo,(x) "))

        query.or_.assert_called_with("full_name.ilike.%jo  x %,title.ilike.%jo  x %")

    async def test_ilike_any_matches_wildcards_literally(self):
        client, query = mock_client(data=[])
        db = DatabaseService(client)

        await db.select_many("organizations", ilike_any=(("name",), "50%_off"))

        query.or_.assert_called_with(r"name.ilike.%50\%\_off%")

    async def test_select_one_returns_none_when_empty(self):
        client, query = mock_client(data=[])
        db = DatabaseService(client)

        assert await db.select_one("followers", {"follower_id": "user-ada"}) is None
        query.limit.assert_called_with(1)

    async def test_insert_returns_stored_row(self):
        client, query = mock_client(data=[{"id": "f-1", "follower_id": "user-ada"}])
        db = DatabaseService(client)

        stored = await db.insert("followers", {"follower_id": "user-ada"})

        assert stored["id"] == "f-1"
        query.insert.assert_called_with({"follower_id": "user-ada"})

    async def test_count(self):
        client, query = mock_client(data=[], count=3)
        db = DatabaseService(client)

        assert await db.count("notifications", {"user_id": "user-john", "is_read": False}) == 3
        query.select.assert_called_with("id", count="exact")
        assert query.eq.call_count == 2

    async def test_client_error_becomes_store_error(self):
        client, _ = mock_client(error=RuntimeError("connection refused"))
        db = DatabaseService(client)

        with pytest.raises(StoreError) as exc_info:
            await db.delete("followers", {"follower_id": "user-ada"})

        assert exc_info.value.table == "followers"
        assert "connection refused" in str(exc_info.value)
