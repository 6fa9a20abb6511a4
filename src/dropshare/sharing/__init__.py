"""Share lifecycle: ingestion, expiry, credentials, retrieval and audit."""

from .audit import (
    AccessAuditor,
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    ShareAuditEvent,
    redact_token,
)
from .credentials import CredentialGuard
from .expiry import RELATIVE_EXPIRY_TOKENS, is_expired, normalize_expiry
from .ingestion import IngestionService
from .links import LinkIssuer, RetrievalHandle
from .model import ShareRecord, blob_key_for, generate_share_id
from .registry import InMemoryShareRegistry
from .retrieval import (
    DownloadPayload,
    RetrievalService,
    ShareStatus,
    UnlockOutcome,
    UnlockResult,
)
from .routes import UnlockRequest, create_share_router

__all__ = [
    'AccessAuditor',
    'CredentialGuard',
    'DownloadPayload',
    'InMemoryShareAuditEmitter',
    'InMemoryShareRegistry',
    'IngestionService',
    'LinkIssuer',
    'LoggingShareAuditEmitter',
    'RELATIVE_EXPIRY_TOKENS',
    'RetrievalHandle',
    'RetrievalService',
    'ShareAuditEmitter',
    'ShareAuditEvent',
    'ShareRecord',
    'ShareStatus',
    'UnlockOutcome',
    'UnlockRequest',
    'UnlockResult',
    'blob_key_for',
    'create_share_router',
    'generate_share_id',
    'is_expired',
    'normalize_expiry',
    'redact_token',
]
