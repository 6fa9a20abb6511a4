"""Share lifecycle error taxonomy.

Every failure a caller can observe is a ``ShareError`` subclass carrying the
HTTP status and machine-readable code the router renders.  Store-level
exceptions (``SupabaseError``, ``BlobStoreError``) never cross a service
boundary; they are translated to ``ShareInternalError`` first.

  ShareValidationError   400  malformed input, client-correctable
  ShareConflict          409  id collision on create (retried internally)
  ShareNotFound          404  unknown share id
  ShareExpired           410  known share past its expiry
  ShareUnauthorized      401  missing or wrong password
  RetrievalHandleInvalid 404  tampered, foreign or stale retrieval handle
  ShareInternalError     500  storage/registry failure or timeout
"""

from __future__ import annotations

from datetime import datetime


class ShareError(Exception):
    """Base class for share lifecycle errors."""

    status_code: int = 500
    error_code: str = 'internal_error'

    def __init__(self, detail: str = '') -> None:
        self.detail = detail or self.__class__.__doc__ or self.error_code
        super().__init__(self.detail)


class ShareValidationError(ShareError):
    """Upload or expiry input is invalid."""

    status_code = 400
    error_code = 'invalid_share'


class ShareConflict(ShareError):
    """A share with this id already exists."""

    status_code = 409
    error_code = 'share_conflict'

    def __init__(self, share_id: str) -> None:
        self.share_id = share_id
        super().__init__('Share id already exists.')


class ShareNotFound(ShareError):
    """Share not found."""

    status_code = 404
    error_code = 'share_not_found'


class ShareExpired(ShareError):
    """Share exists but has passed its expiry time."""

    status_code = 410
    error_code = 'share_expired'

    def __init__(self, expired_at: datetime) -> None:
        self.expired_at = expired_at
        super().__init__(f'Share expired at {expired_at.isoformat()}.')


class ShareUnauthorized(ShareError):
    """Password missing or incorrect."""

    status_code = 401

    def __init__(self, *, missing: bool) -> None:
        self.missing = missing
        self.error_code = 'password_required' if missing else 'invalid_password'
        super().__init__(
            'This share is password protected.' if missing else 'Incorrect password.'
        )


class RetrievalHandleInvalid(ShareError):
    """Retrieval handle is invalid or has expired."""

    status_code = 404
    error_code = 'handle_invalid'


class ShareInternalError(ShareError):
    """Storage or registry failure."""

    status_code = 500
    error_code = 'internal_error'

    def __init__(self, detail: str = '', *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(detail)


# ── Blob store errors ────────────────────────────────────────────────
# Raised by blob store backends; translated before leaving a service.


class BlobStoreError(Exception):
    """Blob store operation failed."""


class BlobKeyExists(BlobStoreError):
    """A blob is already stored under this key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f'Blob key already in use: {key}')
