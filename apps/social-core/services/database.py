from supabase import acreate_client, AsyncClient
from config import settings
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import re

logger = logging.getLogger(__name__)

# PostgREST uses these as separators inside an or=(...) filter
_FILTER_RESERVED = re.compile(r"[,()]")
# Matched literally in search terms
_LIKE_WILDCARDS = re.compile(r"([\\%_])")


class StoreError(Exception):
    """Any failure reported by the hosted store"""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class DatabaseService:
    """Thin CRUD/query layer over the Supabase async client

    Every method raises StoreError on failure; callers decide whether
    the failure is fatal.
    """

    def __init__(self, client: Optional[AsyncClient] = None):
        self._client = client

    async def get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await acreate_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
            )
        return self._client

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row, return the stored row"""
        client = await self.get_client()
        response = await self._run(table, client.table(table).insert(row))
        return response.data[0] if response.data else dict(row)

    async def update(
        self, table: str, match: Dict[str, Any], values: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update matching rows, return the updated rows"""
        client = await self.get_client()
        query = self._apply_match(client.table(table).update(values), match)
        response = await self._run(table, query)
        return response.data or []

    async def delete(self, table: str, match: Dict[str, Any]):
        """Delete matching rows. Deleting nothing is not an error."""
        client = await self.get_client()
        query = self._apply_match(client.table(table).delete(), match)
        await self._run(table, query)

    async def delete_before(self, table: str, column: str, cutoff: str):
        """Delete rows whose `column` is earlier than cutoff (ISO timestamp)"""
        client = await self.get_client()
        await self._run(table, client.table(table).delete().lt(column, cutoff))

    async def select_one(
        self, table: str, match: Dict[str, Any], columns: str = "*"
    ) -> Optional[Dict[str, Any]]:
        """Get the first matching row or None"""
        rows = await self.select_many(table, match, columns=columns, limit=1)
        return rows[0] if rows else None

    async def select_many(
        self,
        table: str,
        match: Optional[Dict[str, Any]] = None,
        *,
        columns: str = "*",
        ilike_any: Optional[Tuple[Sequence[str], str]] = None,
        in_: Optional[Tuple[str, Sequence[Any]]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows

        Args:
            match: column -> value equality filters
            ilike_any: (columns, term) - row matches if any column contains term
                (case-insensitive)
            in_: (column, values) membership filter
        """
        client = await self.get_client()
        query = self._apply_match(client.table(table).select(columns), match or {})

        if ilike_any:
            fields, term = ilike_any
            query = query.or_(self._ilike_clause(fields, term))
        if in_:
            column, values = in_
            query = query.in_(column, list(values))
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit is not None:
            query = query.limit(limit)

        response = await self._run(table, query)
        return response.data or []

    async def count(self, table: str, match: Dict[str, Any]) -> int:
        """Count matching rows"""
        client = await self.get_client()
        query = self._apply_match(client.table(table).select("id", count="exact"), match)
        response = await self._run(table, query)
        return response.count or 0

    @staticmethod
    def _apply_match(query, match: Dict[str, Any]):
        for column, value in match.items():
            query = query.eq(column, value)
        return query

    @staticmethod
    def _ilike_clause(fields: Sequence[str], term: str) -> str:
        literal = _LIKE_WILDCARDS.sub(r"\\\1", _FILTER_RESERVED.sub(" ", term.strip()))
        pattern = f"%{literal}%"
        return ",".join(f"{field}.ilike.{pattern}" for field in fields)

    @staticmethod
    async def _run(table: str, query):
        try:
            return await query.execute()
        except Exception as e:
            logger.error(f"Store error on table '{table}': {e}")
            raise StoreError(str(e), table=table) from e
