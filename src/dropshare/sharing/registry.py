"""In-memory share registry for local development and tests.

Satisfies the ``ShareRegistry`` protocol.  All mutations happen under a
single ``asyncio.Lock`` so create-if-absent and the access counter behave
like their database counterparts under concurrent callers.  Callers get
copies; stored records are never handed out for mutation.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from dropshare.errors import ShareConflict

from .model import ShareRecord


class InMemoryShareRegistry:
    def __init__(self) -> None:
        self._records: dict[str, ShareRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: ShareRecord) -> ShareRecord:
        async with self._lock:
            if record.id in self._records:
                raise ShareConflict(record.id)
            self._records[record.id] = record.copy()
            return record.copy()

    async def get_by_id(self, share_id: str) -> ShareRecord | None:
        record = self._records.get(share_id)
        return record.copy() if record else None

    async def record_access(
        self, share_id: str, *, at: datetime | None = None,
    ) -> ShareRecord | None:
        async with self._lock:
            record = self._records.get(share_id)
            if record is None:
                return None
            record.download_count += 1
            record.last_accessed_at = at or datetime.now(timezone.utc)
            return record.copy()

    def __len__(self) -> int:
        return len(self._records)
