"""Dropshare FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application.  It wires middleware (request bookkeeping, CORS), the share
routes, and injects blob store / registry implementations.

Usage:
    # Local development (in-memory stores, per-process signing key)
    from dropshare import create_app, ShareSettings
    app = create_app(ShareSettings())

    # Non-local (Supabase stores built from settings)
    app = create_app(ShareSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, blob_store=store, registry=registry, ...)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .observability.metrics import metrics_text
from .observability.middleware import ShareRequestMiddleware
from .protocols import BlobStore, ShareRegistry
from .settings import ShareSettings
from .sharing import (
    AccessAuditor,
    CredentialGuard,
    InMemoryShareRegistry,
    IngestionService,
    LinkIssuer,
    LoggingShareAuditEmitter,
    RetrievalService,
    ShareAuditEmitter,
    create_share_router,
)
from .sharing.expiry import utc_now
from .storage import InMemoryBlobStore, SupabaseBlobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for the injected stores and the services built on them.

    Stored on ``app.state.deps`` so tests can reach the stores.
    """

    blob_store: BlobStore
    registry: ShareRegistry
    audit_emitter: ShareAuditEmitter
    credentials: CredentialGuard
    issuer: LinkIssuer
    ingestion: IngestionService
    retrieval: RetrievalService
    closers: tuple[Callable[[], Awaitable[None]], ...] = field(default_factory=tuple)


def _build_supabase_stores(
    settings: ShareSettings,
) -> tuple[BlobStore, ShareRegistry, tuple[Callable[[], Awaitable[None]], ...]]:
    """Construct Supabase-backed stores from settings."""
    from .db import SupabaseClient, SupabaseShareRegistry, SupabaseStorageClient

    db_client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        timeout_seconds=settings.store_timeout_seconds,
    )
    storage_client = SupabaseStorageClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        bucket=settings.storage_bucket,
        timeout_seconds=settings.store_timeout_seconds,
    )
    return (
        SupabaseBlobStore(storage_client),
        SupabaseShareRegistry(db_client, table=settings.shares_table),
        (db_client.aclose, storage_client.aclose),
    )


def _signing_key(settings: ShareSettings) -> str:
    if settings.link_signing_key:
        return settings.link_signing_key
    # validate() guarantees a configured key outside local mode.
    logger.warning('LINK_SIGNING_KEY not set; retrieval handles will not survive a restart')
    return LinkIssuer.generate_key()


def build_dependencies(
    settings: ShareSettings,
    *,
    blob_store: BlobStore | None = None,
    registry: ShareRegistry | None = None,
    audit_emitter: ShareAuditEmitter | None = None,
    credentials: CredentialGuard | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AppDependencies:
    """Fill in missing stores for the environment and build the services."""
    # Injected stores are used as given; an empty in-memory registry is falsy.
    closers: tuple[Callable[[], Awaitable[None]], ...] = ()
    if blob_store is None or registry is None:
        if settings.is_local:
            if blob_store is None:
                blob_store = InMemoryBlobStore()
            if registry is None:
                registry = InMemoryShareRegistry()
        else:
            sb_blob_store, sb_registry, closers = _build_supabase_stores(settings)
            if blob_store is None:
                blob_store = sb_blob_store
            if registry is None:
                registry = sb_registry

    if audit_emitter is None:
        audit_emitter = LoggingShareAuditEmitter()
    if credentials is None:
        credentials = CredentialGuard(rounds=settings.bcrypt_rounds)
    if clock is None:
        clock = utc_now
    timeout = settings.store_timeout_seconds

    issuer = LinkIssuer(_signing_key(settings), ttl_seconds=settings.retrieval_ttl_seconds)
    ingestion = IngestionService(
        blob_store=blob_store,
        registry=registry,
        credentials=credentials,
        emitter=audit_emitter,
        max_upload_bytes=settings.max_upload_bytes,
        timeout_seconds=timeout,
        clock=clock,
    )
    retrieval = RetrievalService(
        registry=registry,
        blob_store=blob_store,
        credentials=credentials,
        issuer=issuer,
        auditor=AccessAuditor(registry, audit_emitter, timeout_seconds=timeout),
        emitter=audit_emitter,
        timeout_seconds=timeout,
        clock=clock,
    )
    return AppDependencies(
        blob_store=blob_store,
        registry=registry,
        audit_emitter=audit_emitter,
        credentials=credentials,
        issuer=issuer,
        ingestion=ingestion,
        retrieval=retrieval,
        closers=closers,
    )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: ShareSettings | None = None,
    *,
    blob_store: BlobStore | None = None,
    registry: ShareRegistry | None = None,
    audit_emitter: ShareAuditEmitter | None = None,
    credentials: CredentialGuard | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create a configured dropshare FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        blob_store, registry: Store overrides. When None, local mode uses
            in-memory stores and other environments build Supabase stores
            from settings.
        audit_emitter: Audit sink. Defaults to the log-backed emitter.
        credentials: Password hasher. Defaults to bcrypt with
            ``settings.bcrypt_rounds``.
        clock: Time source for expiry decisions. Defaults to UTC now.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = ShareSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Dropshare settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    deps = build_dependencies(
        settings,
        blob_store=blob_store,
        registry=registry,
        audit_emitter=audit_emitter,
        credentials=credentials,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Dropshare startup (environment=%s)", settings.environment)
        yield
        for close in deps.closers:
            await close()
        logger.info("Dropshare shutdown")

    app = FastAPI(
        title="Dropshare",
        description="Ephemeral, optionally password-protected file sharing",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    # Outermost first: ShareRequest -> CORS -> route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
    app.add_middleware(ShareRequestMiddleware)

    # ── Routes ──────────────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics exposition endpoint."""
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(create_share_router(
        deps.ingestion,
        deps.retrieval,
        public_url=settings.public_url,
        max_upload_bytes=settings.max_upload_bytes,
    ))

    return app


# For uvicorn, use --factory flag:
#   uvicorn dropshare.main:create_app --factory
# This avoids executing create_app() at import time.
