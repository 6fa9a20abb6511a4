"""Store protocol interfaces for dependency injection.

The app factory accepts any implementation matching these protocols
(InMemory for local dev and tests, Supabase for deployed environments).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dropshare.sharing.model import ShareRecord


@runtime_checkable
class BlobStore(Protocol):
    """File bytes keyed by an opaque storage key.

    ``put`` must not overwrite: an existing key raises ``BlobKeyExists``.
    ``get`` returns None for unknown keys; ``delete`` is idempotent.
    """

    async def put(self, key: str, data: bytes, *, content_type: str) -> str: ...
    async def get(self, key: str) -> bytes | None: ...
    async def delete(self, key: str) -> None: ...


@runtime_checkable
class ShareRegistry(Protocol):
    """Share metadata lifecycle.

    ``create`` is create-if-absent and raises ``ShareConflict`` on a
    duplicate id.  ``record_access`` increments the download counter
    atomically and returns the updated record, or None for unknown ids.
    """

    async def create(self, record: ShareRecord) -> ShareRecord: ...
    async def get_by_id(self, share_id: str) -> ShareRecord | None: ...
    async def record_access(
        self, share_id: str, *, at: datetime | None = None,
    ) -> ShareRecord | None: ...
