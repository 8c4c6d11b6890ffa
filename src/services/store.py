# --------------------------- src/services/store.py ----------------------------
"""
Inquiry Router · Persistence Contract & Supabase Store

OVERVIEW:
Defines the small, filter-based contract the pipeline needs from the
persistence layer, plus the production implementation over Supabase.

CONTRACT:
- find(table, filters) -> rows            (empty list when nothing matches)
- find_one(table, filters) -> row | None  (None when nothing matches)
- insert(table, record) -> created row with generated id
- insert_many(table, records) -> created rows
- update(table, id, patch) -> updated row

FILTER SEMANTICS:
- {"column": value}           equality
- {"column": [a, b]}          IN
- {"json_col->>key": "text"}  JSON field compared as text ('true', 'pending')

ERROR MAPPING:
- Postgres unique violation (23505) -> DuplicateRecordError
- Any other PostgREST API error     -> StoreError
- Transport / connection failures   -> propagate unchanged

DEPENDENCIES:
- supabase AsyncClient
- postgrest APIError for error codes
"""

import logging
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from src.services.errors import DuplicateRecordError, StoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class Store:
    """
    Abstract persistence contract used by every pipeline component.

    Implementations must treat "no rows" as a normal empty result and must
    never raise for it.
    """

    async def find(self, table: str, filters: Optional[Dict[str, Any]] = None, *,
                   columns: str = "*", order_by: Optional[str] = None,
                   descending: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def find_one(self, table: str, filters: Dict[str, Any],
                       columns: str = "*") -> Optional[Dict[str, Any]]:
        rows = await self.find(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def insert_many(self, table: str, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [await self.insert(table, record) for record in records]

    async def update(self, table: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class SupabaseStore(Store):
    """
    Store implementation backed by the Supabase REST (PostgREST) API.

    The async client is injected so a single connection is shared by all
    components of one process; tests substitute an in-memory Store instead.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    async def find(self, table, filters=None, *, columns="*", order_by=None,
                   descending=False, limit=None):
        query = self.client.table(table).select(columns)
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(column, list(value))
            else:
                query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)

        try:
            response = await query.execute()
        except APIError as e:
            raise self._translate(e, table) from e
        return response.data or []

    async def insert(self, table, record):
        try:
            response = await self.client.table(table).insert(record).execute()
        except APIError as e:
            raise self._translate(e, table) from e

        if not response.data:
            raise StoreError(f"Insert into {table} returned no row")
        return response.data[0]

    async def insert_many(self, table, records):
        try:
            response = await self.client.table(table).insert(records).execute()
        except APIError as e:
            raise self._translate(e, table) from e
        return response.data or []

    async def update(self, table, record_id, patch):
        try:
            response = await self.client.table(table).update(patch).eq("id", record_id).execute()
        except APIError as e:
            raise self._translate(e, table) from e
        return response.data[0] if response.data else {}

    @staticmethod
    def _translate(error: APIError, table: str) -> StoreError:
        code = getattr(error, "code", None)
        message = getattr(error, "message", None) or str(error)
        if code == UNIQUE_VIOLATION:
            return DuplicateRecordError(f"{table}: {message}", code=code)
        logger.error(f"Store request on {table} failed ({code}): {message}")
        return StoreError(f"{table}: {message}", code=code)


async def create_supabase_store(url: str, key: str) -> SupabaseStore:
    """Build a SupabaseStore from project URL and service role key."""
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    client = await acreate_client(url, key)
    return SupabaseStore(client)
