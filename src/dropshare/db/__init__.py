"""Supabase-backed stores (PostgREST registry, Storage blobs)."""

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    SupabaseTimeoutError,
)
from .share_registry import SupabaseShareRegistry
from .storage_client import SupabaseStorageClient
from .supabase_client import SupabaseClient

__all__ = [
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabaseShareRegistry",
    "SupabaseStorageClient",
    "SupabaseTimeoutError",
]
