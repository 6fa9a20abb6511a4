"""Pytest configuration for dropshare tests."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from dropshare.sharing import (
    AccessAuditor,
    CredentialGuard,
    InMemoryShareAuditEmitter,
    InMemoryShareRegistry,
    IngestionService,
    LinkIssuer,
    RetrievalService,
)
from dropshare.storage import InMemoryBlobStore

T0 = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable time source shared by services under test."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ShareStack:
    """In-memory stores plus the services built on them."""

    def __init__(self, *, clock=None, blob_store=None, registry=None, timeout=1.0,
                 max_upload_bytes=1024 * 1024, id_factory=None):
        # Empty in-memory stores are falsy, so test for None explicitly.
        self.clock = clock if clock is not None else FakeClock()
        self.blob_store = blob_store if blob_store is not None else InMemoryBlobStore()
        self.registry = registry if registry is not None else InMemoryShareRegistry()
        self.emitter = InMemoryShareAuditEmitter()
        # Minimum bcrypt cost keeps the suite fast.
        self.credentials = CredentialGuard(rounds=4)
        self.issuer = LinkIssuer(LinkIssuer.generate_key(), ttl_seconds=300)
        ingestion_kwargs = {}
        if id_factory is not None:
            ingestion_kwargs['id_factory'] = id_factory
        self.ingestion = IngestionService(
            blob_store=self.blob_store,
            registry=self.registry,
            credentials=self.credentials,
            emitter=self.emitter,
            max_upload_bytes=max_upload_bytes,
            timeout_seconds=timeout,
            clock=self.clock,
            **ingestion_kwargs,
        )
        self.retrieval = RetrievalService(
            registry=self.registry,
            blob_store=self.blob_store,
            credentials=self.credentials,
            issuer=self.issuer,
            auditor=AccessAuditor(self.registry, self.emitter, timeout_seconds=timeout),
            emitter=self.emitter,
            timeout_seconds=timeout,
            clock=self.clock,
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stack(clock):
    return ShareStack(clock=clock)
