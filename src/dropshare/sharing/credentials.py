"""Password hashing and verification for protected shares.

bcrypt generates a fresh salt on every ``hash`` call and ``checkpw``
compares digests in constant time.  bcrypt only reads the first 72 bytes
of its input, so longer passwords are rejected rather than silently
truncated.
"""

from __future__ import annotations

import logging

import bcrypt

from dropshare.errors import ShareValidationError

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


def normalize_password(password: str | None) -> str | None:
    """Map an absent or empty password to None (public share)."""
    if password is None or password == '':
        return None
    return password


class CredentialGuard:
    """One-way password hashing with constant-time verification."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if rounds < 4 or rounds > 31:
            raise ValueError(f'bcrypt rounds must be 4-31, got {rounds}')
        self._rounds = rounds

    def hash(self, password: str) -> str:
        encoded = password.encode('utf-8')
        if not encoded:
            raise ShareValidationError('Password must not be empty.')
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ShareValidationError(
                f'Password must be at most {MAX_PASSWORD_BYTES} bytes.'
            )
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode('ascii')

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a password against a stored hash. Never raises."""
        encoded = password.encode('utf-8')
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode('ascii'))
        except ValueError:
            logger.warning('Stored password hash is malformed')
            return False
