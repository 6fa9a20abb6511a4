"""Supabase-backed ShareRegistry implementation.

Persists share records in public.file_shares via PostgREST.

Atomicity:
  - ``create`` is a plain INSERT; the primary key turns a duplicate id into
    a 409, which surfaces as ``ShareConflict``.  No check-then-insert.
  - ``record_access`` calls the ``record_share_access`` SQL function, a
    single ``UPDATE ... SET download_count = download_count + 1`` so
    concurrent unlocks never lose an increment.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from dropshare.errors import ShareConflict
from dropshare.sharing.model import ShareRecord

from .errors import SupabaseConflictError
from .supabase_client import SupabaseClient

RECORD_ACCESS_FUNCTION = "record_share_access"


class SupabaseShareRegistry:
    """ShareRegistry backed by public.file_shares."""

    def __init__(self, client: SupabaseClient, *, table: str = "public.file_shares") -> None:
        self._client = client
        self._table = table

    async def create(self, record: ShareRecord) -> ShareRecord:
        try:
            rows = await self._client.insert(self._table, record.to_row())
        except SupabaseConflictError:
            raise ShareConflict(record.id) from None
        return ShareRecord.from_row(rows[0]) if rows else record.copy()

    async def get_by_id(self, share_id: str) -> ShareRecord | None:
        rows = await self._client.select(
            self._table,
            filters={"id": ("eq", share_id)},
            limit=1,
        )
        return ShareRecord.from_row(rows[0]) if rows else None

    async def record_access(
        self, share_id: str, *, at: datetime | None = None,
    ) -> ShareRecord | None:
        params: dict[str, Any] = {"p_share_id": share_id}
        if at is not None:
            params["p_accessed_at"] = at.isoformat()
        result = await self._client.rpc(RECORD_ACCESS_FUNCTION, params)
        # PostgREST returns a set-returning function as a list.
        if isinstance(result, list):
            result = result[0] if result else None
        if not result:
            return None
        return ShareRecord.from_row(result)
