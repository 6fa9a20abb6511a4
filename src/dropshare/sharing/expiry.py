"""Share expiry policy.

Uploads name their expiry either as an absolute timestamp or as one of a
fixed set of relative tokens.  The resolved timestamp must lie strictly in
the future at validation time; expiry is immutable afterwards.

Naive timestamps are interpreted as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import MappingProxyType

from dropshare.errors import ShareValidationError

from .model import ShareRecord

RELATIVE_EXPIRY_TOKENS = MappingProxyType({
    '1h': timedelta(hours=1),
    '1d': timedelta(days=1),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        # Offsets can push timestamps at the edge of the range past year 9999.
        raise ShareValidationError('Expiry is out of range.') from None


def _parse_absolute(raw: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw.replace('Z', '+00:00'))
    except ValueError:
        raise ShareValidationError(
            f'Unsupported expiry {raw!r}; use an ISO-8601 timestamp or one of '
            f'{sorted(RELATIVE_EXPIRY_TOKENS)}.'
        ) from None
    return _as_utc(parsed)


def normalize_expiry(
    candidate: datetime | str | None,
    *,
    now: datetime | None = None,
) -> datetime:
    """Resolve an expiry candidate to an aware UTC timestamp.

    Args:
        candidate: Absolute datetime, ISO-8601 string, or relative token.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        The resolved expiry, strictly after ``now``.

    Raises:
        ShareValidationError: Missing, unparseable, unsupported relative
            token, or not in the future.
    """
    now = _as_utc(now) if now is not None else utc_now()

    if candidate is None or (isinstance(candidate, str) and not candidate.strip()):
        raise ShareValidationError('An expiry is required.')

    if isinstance(candidate, datetime):
        resolved = _as_utc(candidate)
    else:
        raw = candidate.strip()
        delta = RELATIVE_EXPIRY_TOKENS.get(raw.lower())
        if delta is not None:
            resolved = now + delta
        else:
            resolved = _parse_absolute(raw)

    if resolved <= now:
        raise ShareValidationError('Expiry must be in the future.')
    return resolved


def is_expired(target: ShareRecord | datetime, now: datetime) -> bool:
    """Return True once ``now`` has reached the expiry."""
    expires_at = target.expires_at if isinstance(target, ShareRecord) else target
    return now >= expires_at
