"""Prometheus metrics for dropshare.

Metric naming follows Prometheus conventions.  HTTP metrics are recorded by
``ShareRequestMiddleware``; share lifecycle counters are incremented by the share
services.

Usage::

    from dropshare.observability.metrics import SHARES_CREATED_TOTAL

    SHARES_CREATED_TOTAL.labels(protected="true").inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS_TOTAL = Counter(
    "http_server_requests_total",
    "Total HTTP requests by method, path pattern, and status code.",
    labelnames=["method", "path", "status"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_FLIGHT = Gauge(
    "http_server_requests_in_flight",
    "Number of HTTP requests currently being processed.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Share lifecycle metrics
# ---------------------------------------------------------------------------

SHARES_CREATED_TOTAL = Counter(
    "dropshare_shares_created_total",
    "Shares committed, by whether a password protects them.",
    labelnames=["protected"],
    registry=REGISTRY,
)

SHARE_UPLOAD_BYTES = Histogram(
    "dropshare_share_upload_bytes",
    "Size of committed uploads in bytes.",
    buckets=(1024, 64 * 1024, 1024 ** 2, 10 * 1024 ** 2, 50 * 1024 ** 2, 100 * 1024 ** 2),
    registry=REGISTRY,
)

UNLOCK_OUTCOMES_TOTAL = Counter(
    "dropshare_unlock_outcomes_total",
    "Unlock attempts by outcome (issued, denied, expired, not_found).",
    labelnames=["outcome"],
    registry=REGISTRY,
)

STORE_TIMEOUTS_TOTAL = Counter(
    "dropshare_store_timeouts_total",
    "Blob store and registry calls that hit their deadline.",
    labelnames=["operation"],
    registry=REGISTRY,
)

ORPHANED_BLOBS_TOTAL = Counter(
    "dropshare_orphaned_blobs_total",
    "Blobs left behind after compensation gave up.",
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Return (body, content_type) for a /metrics endpoint."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
