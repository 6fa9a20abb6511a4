"""Request middleware for the dropshare app.

``ShareRequestMiddleware`` does the per-request bookkeeping in one pass:

  - accepts a well-formed ``X-Request-ID`` or mints one, exposes it to
    logging through ``request_id_ctx`` and echoes it on the response
  - records the HTTP Prometheus metrics
  - writes one ``request_completed`` line carrying the share outcome

Share ids and retrieval handles travel in URL paths.  Paths are collapsed
to their route template before they reach metric labels or log lines.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging import request_id_ctx
from .metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_FLIGHT,
    HTTP_REQUESTS_TOTAL,
)

logger = logging.getLogger(__name__)

_VALID_REQUEST_ID = re.compile(r"^[a-zA-Z0-9\-]{8,128}$")

_PATH_TEMPLATES = [
    (re.compile(r"^/api/v1/shares/[^/]+/unlock$"), "/api/v1/shares/{id}/unlock"),
    (re.compile(r"^/api/v1/shares/[^/]+$"), "/api/v1/shares/{id}"),
    (re.compile(r"^/api/v1/downloads/[^/]+$"), "/api/v1/downloads/{handle}"),
]

# Status codes the share routes use for their non-success outcomes.
_SHARE_OUTCOMES = {
    400: "invalid",
    401: "denied",
    404: "not_found",
    409: "conflict",
    410: "expired",
}


def normalize_path(path: str) -> str:
    """Collapse secret path segments for metric labels and logs."""
    for pattern, template in _PATH_TEMPLATES:
        if pattern.match(path):
            return template
    return path


def share_outcome(path: str, status_code: int) -> str:
    """Classify a response for the request log line."""
    if status_code >= 500:
        return "error"
    if not path.startswith("/api/v1/"):
        return "ok" if status_code < 400 else "rejected"
    if status_code < 400:
        return "ok"
    return _SHARE_OUTCOMES.get(status_code, "rejected")


def _request_id(request: Request) -> str:
    incoming = request.headers.get("x-request-id", "")
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class ShareRequestMiddleware(BaseHTTPMiddleware):
    """Request id, metrics and one log line per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        rid = _request_id(request)
        request.state.request_id = rid
        path = normalize_path(request.url.path)
        method = request.method

        token = request_id_ctx.set(rid)
        HTTP_REQUESTS_IN_FLIGHT.inc()
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            elapsed = time.perf_counter() - start
            HTTP_REQUESTS_IN_FLIGHT.dec()
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(elapsed)
            HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=str(status)).inc()
            logger.log(
                logging.ERROR if status >= 500 else logging.INFO,
                "request_completed method=%s path=%s status=%d outcome=%s duration_ms=%.2f",
                method, path, status, share_outcome(path, status), elapsed * 1000,
            )
            request_id_ctx.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
