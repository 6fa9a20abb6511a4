"""Supabase client error hierarchy.

Shared by the PostgREST and Storage clients.  Kept small and free of
httpx types so repositories can catch them without leaking responses (or
service-role keys) into logs.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupabaseError(Exception):
    """Base Supabase error for PostgREST and Storage requests."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        bits: list[str] = [f"SupabaseError(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.details:
            bits.append(f"details={self.details}")
        return " ".join(bits)


class SupabaseAuthError(SupabaseError):
    """401/403 auth errors (bad key, RLS, etc.)."""


class SupabaseNotFoundError(SupabaseError):
    """404 errors (missing row, object, table or route)."""


class SupabaseConflictError(SupabaseError):
    """409 conflicts (unique violations, existing storage objects)."""


class SupabaseTimeoutError(SupabaseError):
    """Request did not complete within the client timeout."""
