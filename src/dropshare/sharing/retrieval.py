"""Share retrieval: status queries, unlock state machine, handle redemption.

Unlock transitions:

  Requested ── registry lookup ──► NotFound                       (404)
      │
      ▼
    Found ──── expiry check ─────► Expired                        (410)
      │
      ├─ public share ───────────────────────────► Granted
      └─ protected ── credential check ──► Denied                  (401)
                                       └─► Granted
  Granted ── Link Issuer ── Access Auditor ──► Issued

Expiry is always evaluated before the password, so an expired share
answers 410 whatever password is presented, and bcrypt never runs for a
dead share.  Status queries never touch the download counter.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from dropshare.errors import (
    RetrievalHandleInvalid,
    ShareExpired,
    ShareNotFound,
    ShareUnauthorized,
)
from dropshare.observability.logging import bind_share
from dropshare.observability.metrics import UNLOCK_OUTCOMES_TOTAL
from dropshare.protocols import BlobStore, ShareRegistry

from .audit import (
    AccessAuditor,
    ShareAuditEmitter,
    ShareAuditEvent,
    emit_safely,
    redact_token,
)
from .bounded import bounded_call
from .credentials import CredentialGuard, normalize_password
from .expiry import is_expired, utc_now
from .links import LinkIssuer, RetrievalHandle
from .model import ShareRecord

logger = logging.getLogger(__name__)

MAX_SHARE_ID_LENGTH = 128


class UnlockOutcome(str, enum.Enum):
    NOT_FOUND = 'not_found'
    EXPIRED = 'expired'
    DENIED = 'denied'
    ISSUED = 'issued'


@dataclass(frozen=True, slots=True)
class ShareStatus:
    """Public, credential-free view of a share."""

    id: str
    original_name: str
    size_bytes: int
    content_type: str
    sender_name: str
    created_at: datetime
    expires_at: datetime
    is_expired: bool
    password_required: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'original_name': self.original_name,
            'size_bytes': self.size_bytes,
            'content_type': self.content_type,
            'sender_name': self.sender_name,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'is_expired': self.is_expired,
            'password_required': self.password_required,
        }


@dataclass(frozen=True, slots=True)
class UnlockResult:
    handle: RetrievalHandle
    record: ShareRecord


@dataclass(frozen=True, slots=True)
class DownloadPayload:
    data: bytes
    file_name: str
    content_type: str


class RetrievalService:
    """Read side of the share lifecycle."""

    def __init__(
        self,
        *,
        registry: ShareRegistry,
        blob_store: BlobStore,
        credentials: CredentialGuard,
        issuer: LinkIssuer,
        auditor: AccessAuditor,
        emitter: ShareAuditEmitter,
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._blob_store = blob_store
        self._credentials = credentials
        self._issuer = issuer
        self._auditor = auditor
        self._emitter = emitter
        self._timeout = timeout_seconds
        self._clock = clock

    async def _lookup(self, share_id: str) -> ShareRecord:
        if not share_id or len(share_id) > MAX_SHARE_ID_LENGTH:
            raise ShareNotFound()
        record = await bounded_call(
            self._registry.get_by_id(share_id),
            timeout=self._timeout,
            operation='registry.get_by_id',
        )
        if record is None:
            raise ShareNotFound()
        return record

    async def get_status(self, share_id: str) -> ShareStatus:
        """Describe a share. Expired shares still answer, flagged as such."""
        record = await self._lookup(share_id)
        return ShareStatus(
            id=record.id,
            original_name=record.original_name,
            size_bytes=record.size_bytes,
            content_type=record.content_type,
            sender_name=record.sender_name,
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_expired=is_expired(record, self._clock()),
            password_required=record.password_required,
        )

    async def unlock(self, share_id: str, password: str | None = None) -> UnlockResult:
        """Run the unlock state machine for one attempt.

        Raises:
            ShareNotFound: Unknown id.
            ShareExpired: Share is past its expiry.
            ShareUnauthorized: Protected share, password missing or wrong.
            ShareInternalError: Registry lookup failed or timed out.
        """
        prefix = redact_token(share_id)
        with bind_share(prefix):
            return await self._unlock(share_id, password, prefix)

    async def _unlock(
        self, share_id: str, password: str | None, prefix: str,
    ) -> UnlockResult:
        try:
            record = await self._lookup(share_id)
        except ShareNotFound:
            logger.info('Unlock %s: %s', prefix, UnlockOutcome.NOT_FOUND.value)
            UNLOCK_OUTCOMES_TOTAL.labels(outcome=UnlockOutcome.NOT_FOUND.value).inc()
            raise

        now = self._clock()
        if is_expired(record, now):
            logger.info('Unlock %s: %s', prefix, UnlockOutcome.EXPIRED.value)
            UNLOCK_OUTCOMES_TOTAL.labels(outcome=UnlockOutcome.EXPIRED.value).inc()
            await emit_safely(self._emitter, ShareAuditEvent(
                event_type='share.expired', share_prefix=prefix, timestamp=now,
            ))
            raise ShareExpired(record.expires_at)

        if record.password_required:
            await self._check_password(record, password, prefix=prefix, now=now)

        handle = self._issuer.issue(record, now=now)
        await self._auditor.record_access(record, at=now)
        logger.info('Unlock %s: %s', prefix, UnlockOutcome.ISSUED.value)
        UNLOCK_OUTCOMES_TOTAL.labels(outcome=UnlockOutcome.ISSUED.value).inc()
        return UnlockResult(handle=handle, record=record)

    async def _check_password(
        self,
        record: ShareRecord,
        password: str | None,
        *,
        prefix: str,
        now: datetime,
    ) -> None:
        candidate = normalize_password(password)
        if candidate is None:
            reason = 'password_missing'
        elif await asyncio.to_thread(
            self._credentials.verify, candidate, record.password_hash,
        ):
            return
        else:
            reason = 'password_mismatch'

        logger.info('Unlock %s: %s (%s)', prefix, UnlockOutcome.DENIED.value, reason)
        UNLOCK_OUTCOMES_TOTAL.labels(outcome=UnlockOutcome.DENIED.value).inc()
        await emit_safely(self._emitter, ShareAuditEvent(
            event_type='share.denied', share_prefix=prefix, detail=reason, timestamp=now,
        ))
        raise ShareUnauthorized(missing=candidate is None)

    async def redeem(self, token: str) -> DownloadPayload:
        """Exchange a retrieval handle for the blob it grants.

        Raises:
            RetrievalHandleInvalid: Bad or stale handle, or blob missing.
            ShareInternalError: Blob store failed or timed out.
        """
        resolved = self._issuer.resolve(token, now=self._clock())
        data = await bounded_call(
            self._blob_store.get(resolved.blob_key),
            timeout=self._timeout,
            operation='blob_store.get',
        )
        if data is None:
            with bind_share(redact_token(resolved.share_id)):
                logger.error('Blob missing for retrieval handle')
            raise RetrievalHandleInvalid()
        return DownloadPayload(
            data=data,
            file_name=resolved.file_name,
            content_type=resolved.content_type,
        )
