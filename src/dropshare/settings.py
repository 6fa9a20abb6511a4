"""Dropshare configuration settings.

ShareSettings is the single configuration object accepted by create_app().
It is a plain dataclass (not env-coupled) so tests can inject config without
touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dropshare.sharing.links import DEFAULT_HANDLE_TTL_SECONDS, MAX_HANDLE_TTL_SECONDS

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_BCRYPT_ROUNDS = 12
DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_STORAGE_BUCKET = "shares"
DEFAULT_SHARES_TABLE = "public.file_shares"
DEFAULT_PUBLIC_URL = "http://localhost:8000"
DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class ShareSettings:
    """Configuration for the dropshare FastAPI application.

    All fields have sensible defaults for local development.
    Non-local environments must supply real values for supabase_url,
    supabase_service_role_key and link_signing_key.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    """Supabase project URL (e.g. https://xyz.supabase.co)."""

    supabase_service_role_key: str = ""
    """Service-role key for PostgREST and Storage calls. Never log this."""

    storage_bucket: str = DEFAULT_STORAGE_BUCKET
    """Private Storage bucket holding share blobs."""

    shares_table: str = DEFAULT_SHARES_TABLE
    """Schema-qualified share metadata table."""

    # ── Links ──────────────────────────────────────────────────────
    public_url: str = DEFAULT_PUBLIC_URL
    """Externally reachable base URL used in share and download links."""

    link_signing_key: str = ""
    """Fernet key for retrieval handles. Generated per process when local."""

    retrieval_ttl_seconds: int = DEFAULT_HANDLE_TTL_SECONDS
    """Lifetime of a retrieval handle, capped by the share's own expiry."""

    # ── Limits ─────────────────────────────────────────────────────
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    """Allowed CORS origins."""

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not 1 <= self.retrieval_ttl_seconds <= MAX_HANDLE_TTL_SECONDS:
            errors.append(
                f"retrieval_ttl_seconds must be 1-{MAX_HANDLE_TTL_SECONDS}"
            )
        if self.store_timeout_seconds <= 0:
            errors.append("store_timeout_seconds must be positive")
        if self.max_upload_bytes < 1:
            errors.append("max_upload_bytes must be positive")
        if not 4 <= self.bcrypt_rounds <= 31:
            errors.append("bcrypt_rounds must be 4-31")
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
            if not self.link_signing_key:
                errors.append(f"{self.environment}: link_signing_key is required")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareSettings directly.

        Raises:
            ValueError: A numeric variable does not parse.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = tuple(o.strip() for o in cors_raw.split(",") if o.strip()) if cors_raw else DEFAULT_CORS_ORIGINS

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            storage_bucket=env.get("STORAGE_BUCKET", DEFAULT_STORAGE_BUCKET),
            shares_table=env.get("SHARES_TABLE", DEFAULT_SHARES_TABLE),
            public_url=env.get("PUBLIC_URL", DEFAULT_PUBLIC_URL),
            link_signing_key=env.get("LINK_SIGNING_KEY", ""),
            retrieval_ttl_seconds=int(
                env.get("RETRIEVAL_TTL_SECONDS", DEFAULT_HANDLE_TTL_SECONDS)
            ),
            store_timeout_seconds=float(
                env.get("STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS)
            ),
            max_upload_bytes=int(env.get("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)),
            bcrypt_rounds=int(env.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)),
            cors_origins=cors,
        )
