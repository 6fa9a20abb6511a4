"""Share record domain model and identifier helpers.

A share is one uploaded file plus its metadata record.  The record is the
only persisted entity; its blob lives in the blob store under a key derived
from the share id.

Security invariants:
  - Share ids come from ``secrets`` (128 bits) and are the public link.
  - The blob key is ``blobs/<sha256(id)>``.  It is never returned to
    clients, and storage listings cannot be mapped back to share links.
  - Only a bcrypt hash of the password is stored.
"""

from __future__ import annotations

import hashlib
import posixpath
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

# ── Constants ─────────────────────────────────────────────────────────

SHARE_ID_BYTES = 16  # 128-bit ids, 22 URL-safe characters.
BLOB_KEY_PREFIX = 'blobs'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'
DEFAULT_SENDER_NAME = 'Anonymous'


# ── Identifier operations ─────────────────────────────────────────────


def generate_share_id() -> str:
    """Generate a cryptographically random, fixed-length share id."""
    return secrets.token_urlsafe(SHARE_ID_BYTES)


def blob_key_for(share_id: str) -> str:
    """Derive the storage key for a share's blob.

    Independent of the uploaded filename so shares never collide and
    user input never reaches a storage path.
    """
    digest = hashlib.sha256(share_id.encode('utf-8')).hexdigest()
    return f'{BLOB_KEY_PREFIX}/{digest}'


def clean_file_name(name: str | None) -> str:
    """Strip directory components from an uploaded filename.

    Returns an empty string when nothing usable remains.
    """
    if not name:
        return ''
    base = posixpath.basename(name.replace('\\', '/')).strip()
    if base in ('.', '..'):
        return ''
    return base


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ── Domain model ──────────────────────────────────────────────────────


@dataclass
class ShareRecord:
    """Share metadata matching the public.file_shares schema.

    Attributes:
        id: Public share id (the link secret).
        original_name: Filename as uploaded, directory components removed.
        size_bytes: Length of the stored blob.
        blob_key: Storage key of the blob. Never exposed to clients.
        expires_at: When the share stops being retrievable.
        password_hash: bcrypt hash, or None for a public share.
        content_type: MIME type reported at upload.
        sender_name: Free-text sender label.
        created_at: Server-side creation time.
        download_count: Successful unlocks so far.
        last_accessed_at: Time of the most recent successful unlock.
    """

    id: str
    original_name: str
    size_bytes: int
    blob_key: str
    expires_at: datetime
    password_hash: str | None = None
    content_type: str = DEFAULT_CONTENT_TYPE
    sender_name: str = DEFAULT_SENDER_NAME
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    download_count: int = 0
    last_accessed_at: datetime | None = None

    @property
    def password_required(self) -> bool:
        return self.password_hash is not None

    def is_expired_at(self, now: datetime) -> bool:
        return now >= self.expires_at

    def copy(self) -> ShareRecord:
        return replace(self)

    def to_row(self) -> dict[str, Any]:
        """Serialize to a PostgREST row."""
        return {
            'id': self.id,
            'original_name': self.original_name,
            'size_bytes': self.size_bytes,
            'blob_key': self.blob_key,
            'password_hash': self.password_hash,
            'content_type': self.content_type,
            'sender_name': self.sender_name,
            'expires_at': self.expires_at.isoformat(),
            'created_at': self.created_at.isoformat(),
            'download_count': self.download_count,
            'last_accessed_at': (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ShareRecord:
        """Build a record from a PostgREST row."""
        return cls(
            id=row['id'],
            original_name=row['original_name'],
            size_bytes=int(row['size_bytes']),
            blob_key=row['blob_key'],
            expires_at=_parse_timestamp(row['expires_at']),
            password_hash=row.get('password_hash'),
            content_type=row.get('content_type') or DEFAULT_CONTENT_TYPE,
            sender_name=row.get('sender_name') or DEFAULT_SENDER_NAME,
            created_at=(
                _parse_timestamp(row.get('created_at'))
                or datetime.now(timezone.utc)
            ),
            download_count=int(row.get('download_count') or 0),
            last_accessed_at=_parse_timestamp(row.get('last_accessed_at')),
        )
