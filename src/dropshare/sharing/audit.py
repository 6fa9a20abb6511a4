"""Share access accounting and audit events.

Two concerns live here:

  1. ``AccessAuditor`` bumps a share's download counter after a granted
     unlock.  Accounting is best-effort: a failed or slow increment is
     logged and never fails the unlock that triggered it.
  2. ``ShareAuditEvent`` records for create/access/deny/expire operations,
     sent to a pluggable ``ShareAuditEmitter``.

Security invariant:
  Share ids are link secrets.  Events and log lines carry only an
  8-character prefix for correlation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from dropshare.errors import ShareError
from dropshare.protocols import ShareRegistry

from .bounded import bounded_call
from .model import ShareRecord

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_PREFIX_LENGTH = 8


# ── Redaction ────────────────────────────────────────────────────────


def redact_token(token: str | None) -> str:
    """Safely truncate a share id or handle to a prefix for logging.

    Returns ``<prefix>...`` or ``<redacted>`` for missing/short values.
    """
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return '<redacted>'
    return f'{token[:TOKEN_PREFIX_LENGTH]}...'


# ── Audit event model ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareAuditEvent:
    """Structured audit event for share operations.

    Attributes:
        event_type: share.created, share.accessed, share.denied or
                    share.expired.
        share_prefix: First 8 chars of the share id.
        detail: Additional context (e.g. denial reason).
        size_bytes: Blob size, when relevant.
        timestamp: When the event occurred.
    """

    event_type: str
    share_prefix: str = '<redacted>'
    detail: str = ''
    size_bytes: int | None = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        """Serialize to a dict safe for JSON logging."""
        return {
            'event_type': self.event_type,
            'share_prefix': self.share_prefix,
            'detail': self.detail,
            'size_bytes': self.size_bytes,
            'timestamp': self.timestamp.isoformat(),
        }


# ── Emitters ─────────────────────────────────────────────────────────


class ShareAuditEmitter(Protocol):
    """Abstract audit event sink."""

    async def emit(self, event: ShareAuditEvent) -> None: ...


class InMemoryShareAuditEmitter:
    """Test audit emitter that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareAuditEvent] = []

    async def emit(self, event: ShareAuditEvent) -> None:
        self.events.append(event)

    def find(self, event_type: str | None = None) -> list[ShareAuditEvent]:
        if event_type:
            return [e for e in self.events if e.event_type == event_type]
        return list(self.events)


class LoggingShareAuditEmitter:
    """Writes audit events to the ``dropshare.audit`` logger."""

    def __init__(self, logger_name: str = 'dropshare.audit') -> None:
        self._logger = logging.getLogger(logger_name)

    async def emit(self, event: ShareAuditEvent) -> None:
        # Fields ride on the record; the configured formatter renders them as keys.
        self._logger.info(event.event_type, extra=event.to_dict())


async def emit_safely(emitter: ShareAuditEmitter, event: ShareAuditEvent) -> None:
    """Emit without letting a broken sink fail the request."""
    try:
        await emitter.emit(event)
    except Exception:
        logger.exception('Audit emit failed for %s', event.event_type)


# ── Access accounting ───────────────────────────────────────────────


class AccessAuditor:
    """Records successful unlocks against the share registry."""

    def __init__(
        self,
        registry: ShareRegistry,
        emitter: ShareAuditEmitter,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._registry = registry
        self._emitter = emitter
        self._timeout = timeout_seconds

    async def record_access(self, record: ShareRecord, *, at: datetime) -> bool:
        """Increment the download counter. Returns False if it did not stick."""
        prefix = redact_token(record.id)
        try:
            updated = await bounded_call(
                self._registry.record_access(record.id, at=at),
                timeout=self._timeout,
                operation='registry.record_access',
            )
        except ShareError as exc:
            logger.warning('access_record_failed share=%s reason=%s', prefix, exc.detail)
            return False
        except Exception:
            logger.exception('access_record_failed share=%s reason=unexpected', prefix)
            return False

        if updated is None:
            logger.warning('access_record_failed share=%s reason=missing', prefix)
            return False

        await emit_safely(self._emitter, ShareAuditEvent(
            event_type='share.accessed',
            share_prefix=prefix,
            size_bytes=record.size_bytes,
            timestamp=at,
        ))
        return True
