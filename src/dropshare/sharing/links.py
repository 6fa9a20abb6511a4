"""Short-lived retrieval handles for unlocked shares.

A successful unlock mints a fresh handle that grants read access to exactly
one blob for a short window.  The handle is a Fernet token (AES-CBC +
HMAC-SHA256) over a small JSON payload:

  sid  share id             fn  download filename
  bk   blob key             ct  content type
  exp  expiry (epoch secs)  jti random nonce

Because the payload is encrypted, the handle reveals neither the blob key
nor anything about other shares, and tampering fails authentication.  The
handle never outlives its share: ``exp = min(now + ttl, share.expires_at)``.
No handle state is kept server-side.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet, InvalidToken

from dropshare.errors import RetrievalHandleInvalid

from .model import ShareRecord

logger = logging.getLogger(__name__)

DEFAULT_HANDLE_TTL_SECONDS = 300
MAX_HANDLE_TTL_SECONDS = 3600


@dataclass(frozen=True, slots=True)
class RetrievalHandle:
    """Opaque, single-blob read credential returned to the caller."""

    token: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class ResolvedHandle:
    """Server-side view of a verified handle."""

    share_id: str
    blob_key: str
    file_name: str
    content_type: str
    expires_at: datetime


class LinkIssuer:
    """Mints and verifies retrieval handles."""

    def __init__(
        self,
        key: str | bytes,
        *,
        ttl_seconds: int = DEFAULT_HANDLE_TTL_SECONDS,
    ) -> None:
        if ttl_seconds < 1 or ttl_seconds > MAX_HANDLE_TTL_SECONDS:
            raise ValueError(
                f'Handle TTL must be 1-{MAX_HANDLE_TTL_SECONDS} seconds, got {ttl_seconds}'
            )
        self._fernet = Fernet(key)
        self._ttl = timedelta(seconds=ttl_seconds)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode('ascii')

    def issue(self, record: ShareRecord, *, now: datetime | None = None) -> RetrievalHandle:
        """Mint a new handle for the record's blob."""
        now = now or datetime.now(timezone.utc)
        expires_at = min(now + self._ttl, record.expires_at)
        payload = {
            'sid': record.id,
            'bk': record.blob_key,
            'fn': record.original_name,
            'ct': record.content_type,
            'exp': expires_at.timestamp(),
            'jti': uuid.uuid4().hex,
        }
        token = self._fernet.encrypt(
            json.dumps(payload, separators=(',', ':')).encode('utf-8'),
        ).decode('ascii')
        return RetrievalHandle(token=token, expires_at=expires_at)

    def resolve(self, token: str, *, now: datetime | None = None) -> ResolvedHandle:
        """Verify a handle and return what it grants.

        Raises:
            RetrievalHandleInvalid: Forged, corrupted or expired handle.
        """
        now = now or datetime.now(timezone.utc)
        try:
            raw = self._fernet.decrypt(token.encode('ascii'))
            payload = json.loads(raw)
            expires_at = datetime.fromtimestamp(float(payload['exp']), tz=timezone.utc)
            resolved = ResolvedHandle(
                share_id=str(payload['sid']),
                blob_key=str(payload['bk']),
                file_name=str(payload['fn']),
                content_type=str(payload['ct']),
                expires_at=expires_at,
            )
        except (InvalidToken, UnicodeEncodeError, ValueError, KeyError, TypeError):
            logger.debug('Rejected malformed retrieval handle')
            raise RetrievalHandleInvalid() from None

        if now >= resolved.expires_at:
            logger.debug('Rejected expired retrieval handle')
            raise RetrievalHandleInvalid()
        return resolved
