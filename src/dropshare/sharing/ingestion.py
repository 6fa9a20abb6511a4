"""Share ingestion: turn an upload into a blob plus one metadata record.

Write sequence per attempt:

  1. allocate a random share id and derive its blob key
  2. put the blob (never overwriting)
  3. create the metadata record (create-if-absent)

An id collision at step 2 or 3 discards the attempt and starts over with
a new id, up to ``id_attempts`` times.  Any other failure after step 2
deletes the blob before the error is reported, so a reported failure
leaves neither a blob nor a record behind.

The sequence runs in its own task behind ``asyncio.shield``: a caller that
disconnects mid-upload cancels only its wait, while the writes run on to
either a committed share or a compensated failure.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from dropshare.errors import (
    BlobKeyExists,
    ShareConflict,
    ShareInternalError,
    ShareValidationError,
)
from dropshare.observability.metrics import (
    ORPHANED_BLOBS_TOTAL,
    SHARE_UPLOAD_BYTES,
    SHARES_CREATED_TOTAL,
)
from dropshare.protocols import BlobStore, ShareRegistry

from .audit import ShareAuditEmitter, ShareAuditEvent, emit_safely, redact_token
from .bounded import bounded_call
from .credentials import CredentialGuard, normalize_password
from .expiry import normalize_expiry, utc_now
from .model import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_SENDER_NAME,
    ShareRecord,
    blob_key_for,
    clean_file_name,
    generate_share_id,
)

logger = logging.getLogger(__name__)

DEFAULT_ID_ATTEMPTS = 3
COMPENSATION_ATTEMPTS = 3
MAX_SENDER_NAME_LENGTH = 100


class IngestionService:
    """Creates shares from uploaded bytes."""

    def __init__(
        self,
        *,
        blob_store: BlobStore,
        registry: ShareRegistry,
        credentials: CredentialGuard,
        emitter: ShareAuditEmitter,
        max_upload_bytes: int,
        timeout_seconds: float = 10.0,
        id_attempts: int = DEFAULT_ID_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_share_id,
    ) -> None:
        if id_attempts < 1:
            raise ValueError('id_attempts must be >= 1')
        self._blob_store = blob_store
        self._registry = registry
        self._credentials = credentials
        self._emitter = emitter
        self._max_upload_bytes = max_upload_bytes
        self._timeout = timeout_seconds
        self._id_attempts = id_attempts
        self._clock = clock
        self._id_factory = id_factory
        self._inflight: set[asyncio.Task] = set()

    async def create_share(
        self,
        file_bytes: bytes,
        file_name: str | None,
        *,
        expires: datetime | str | None,
        password: str | None = None,
        content_type: str | None = None,
        sender_name: str | None = None,
    ) -> ShareRecord:
        """Store an upload and register it as a share.

        Raises:
            ShareValidationError: Empty or oversized file, empty name, bad
                expiry or over-long password.  Nothing is written.
            ShareInternalError: Storage failure, timeout or exhausted id
                allocation.  Nothing is left behind.
        """
        name = clean_file_name(file_name)
        if not name:
            raise ShareValidationError('A file name is required.')
        if not file_bytes:
            raise ShareValidationError('The uploaded file is empty.')
        if len(file_bytes) > self._max_upload_bytes:
            raise ShareValidationError(
                f'File exceeds the {self._max_upload_bytes} byte upload limit.'
            )

        now = self._clock()
        expires_at = normalize_expiry(expires, now=now)

        password = normalize_password(password)
        password_hash = None
        if password is not None:
            password_hash = await asyncio.to_thread(self._credentials.hash, password)

        sender = (sender_name or '').strip()[:MAX_SENDER_NAME_LENGTH] or DEFAULT_SENDER_NAME

        task = asyncio.create_task(self._commit(
            data=bytes(file_bytes),
            name=name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            sender=sender,
            password_hash=password_hash,
            expires_at=expires_at,
            now=now,
        ))
        self._inflight.add(task)
        task.add_done_callback(self._finish_inflight)

        try:
            record = await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.info('Upload caller went away; ingestion continues in background')
            raise

        await emit_safely(self._emitter, ShareAuditEvent(
            event_type='share.created',
            share_prefix=redact_token(record.id),
            size_bytes=record.size_bytes,
            detail='protected' if record.password_required else 'public',
            timestamp=now,
        ))
        SHARES_CREATED_TOTAL.labels(
            protected=str(record.password_required).lower(),
        ).inc()
        SHARE_UPLOAD_BYTES.observe(record.size_bytes)
        logger.info(
            'Share %s created (%d bytes, expires %s)',
            redact_token(record.id), record.size_bytes, record.expires_at.isoformat(),
        )
        return record

    def _finish_inflight(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, ShareInternalError):
            logger.error('Ingestion task failed unexpectedly: %r', exc)

    async def _commit(
        self,
        *,
        data: bytes,
        name: str,
        content_type: str,
        sender: str,
        password_hash: str | None,
        expires_at: datetime,
        now: datetime,
    ) -> ShareRecord:
        for attempt in range(1, self._id_attempts + 1):
            share_id = self._id_factory()
            blob_key = blob_key_for(share_id)
            record = ShareRecord(
                id=share_id,
                original_name=name,
                size_bytes=len(data),
                blob_key=blob_key,
                expires_at=expires_at,
                password_hash=password_hash,
                content_type=content_type,
                sender_name=sender,
                created_at=now,
            )

            try:
                await bounded_call(
                    self._blob_store.put(blob_key, data, content_type=content_type),
                    timeout=self._timeout,
                    operation='blob_store.put',
                )
            except BlobKeyExists:
                # Someone else's blob: leave it alone.
                logger.warning('Blob key collision on attempt %d; regenerating id', attempt)
                continue
            except ShareInternalError:
                # A timed-out put may still have landed.
                await self._compensate(blob_key)
                raise

            try:
                return await bounded_call(
                    self._registry.create(record),
                    timeout=self._timeout,
                    operation='registry.create',
                )
            except ShareConflict:
                logger.warning('Share id collision on attempt %d; regenerating id', attempt)
                await self._compensate(blob_key)
                continue
            except ShareInternalError:
                await self._compensate(blob_key)
                raise
            except Exception as exc:
                await self._compensate(blob_key)
                raise ShareInternalError('registry.create failed.') from exc

        raise ShareInternalError(
            f'Could not allocate a unique share id after {self._id_attempts} attempts.'
        )

    async def _compensate(self, blob_key: str) -> None:
        """Delete a blob whose metadata write did not happen."""
        for attempt in range(1, COMPENSATION_ATTEMPTS + 1):
            try:
                await bounded_call(
                    self._blob_store.delete(blob_key),
                    timeout=self._timeout,
                    operation='blob_store.delete',
                )
                logger.info('Compensated blob %s', blob_key)
                return
            except ShareInternalError:
                logger.warning('Compensating delete attempt %d failed for %s', attempt, blob_key)
        # Left for out-of-band reconciliation.
        ORPHANED_BLOBS_TOTAL.inc()
        logger.error('orphaned_blob key=%s', blob_key)
