"""Blob store implementations.

Blobs are addressed by an opaque key chosen by the caller.  Both backends
refuse to overwrite an existing key so a share can never clobber another
share's bytes.
"""

from __future__ import annotations

import logging

from dropshare.db.errors import SupabaseConflictError, SupabaseNotFoundError
from dropshare.db.storage_client import SupabaseStorageClient
from dropshare.errors import BlobKeyExists

logger = logging.getLogger(__name__)


class InMemoryBlobStore:
    """Dict-backed blob store for local development and tests."""

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, *, content_type: str) -> str:
        if key in self._blobs:
            raise BlobKeyExists(key)
        self._blobs[key] = (bytes(data), content_type)
        return key

    async def get(self, key: str) -> bytes | None:
        entry = self._blobs.get(key)
        return entry[0] if entry else None

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class SupabaseBlobStore:
    """Blob store backed by a private Supabase Storage bucket."""

    def __init__(self, client: SupabaseStorageClient) -> None:
        self._client = client

    async def put(self, key: str, data: bytes, *, content_type: str) -> str:
        try:
            await self._client.upload(key, data, content_type=content_type)
        except SupabaseConflictError:
            raise BlobKeyExists(key) from None
        return key

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client.download(key)
        except SupabaseNotFoundError:
            return None

    async def delete(self, key: str) -> None:
        await self._client.remove([key])
        logger.debug('Removed blob %s from bucket %s', key, self._client.bucket)
