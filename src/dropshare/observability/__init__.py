"""Observability for dropshare: structured logging, Prometheus metrics and
request-ID correlation."""

from .logging import (
    bind_share,
    configure_logging,
    request_id_ctx,
    reset_logging,
    share_ctx,
)
from .metrics import metrics_text
from .middleware import ShareRequestMiddleware

__all__ = [
    "ShareRequestMiddleware",
    "bind_share",
    "configure_logging",
    "metrics_text",
    "request_id_ctx",
    "reset_logging",
    "share_ctx",
]
