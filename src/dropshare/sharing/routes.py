"""Share HTTP endpoints.

  POST /api/v1/shares                   → upload a file, create a share
  GET  /api/v1/shares/{share_id}        → share status (never needs a password)
  POST /api/v1/shares/{share_id}/unlock → check password, mint retrieval handle
  GET  /api/v1/downloads/{handle}       → fetch the blob a handle grants

Error responses share one shape, ``{'error': <code>, 'detail': <message>}``,
with ``'retryable': true`` added for timeouts:

  400 invalid_share     401 password_required / invalid_password
  404 share_not_found   404 handle_invalid
  410 share_expired     500 internal_error

This module provides:
  ``create_share_router``: FastAPI router factory with injected services.
"""

from __future__ import annotations

import logging
import urllib.parse

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from dropshare.errors import ShareError, ShareInternalError, ShareValidationError

from .ingestion import IngestionService
from .retrieval import RetrievalService

logger = logging.getLogger(__name__)


# ── Request schemas ──────────────────────────────────────────────────


class UnlockRequest(BaseModel):
    """Request body for unlocking a share."""

    password: str | None = Field(default=None, description='Share password, if any')


# ── Helpers ──────────────────────────────────────────────────────────


def _error_response(exc: ShareError) -> JSONResponse:
    content = {'error': exc.error_code, 'detail': exc.detail}
    if isinstance(exc, ShareInternalError):
        # Store errors stay in the logs.
        content['detail'] = 'The request could not be completed.'
        if exc.retryable:
            content['retryable'] = True
    return JSONResponse(status_code=exc.status_code, content=content)


def content_disposition(file_name: str) -> str:
    """Build an attachment header with an RFC 5987 UTF-8 fallback."""
    quoted = urllib.parse.quote(file_name, safe='')
    ascii_name = file_name.encode('ascii', 'ignore').decode('ascii').replace('"', '')
    return f'attachment; filename="{ascii_name or "download"}"; filename*=UTF-8\'\'{quoted}'


# ── Route factory ────────────────────────────────────────────────────


def create_share_router(
    ingestion: IngestionService,
    retrieval: RetrievalService,
    *,
    public_url: str,
    max_upload_bytes: int,
) -> APIRouter:
    """Create the share router.

    Args:
        ingestion: Upload side of the share lifecycle.
        retrieval: Status/unlock/download side.
        public_url: Externally reachable base URL for generated links.
        max_upload_bytes: Upload size cap; at most one byte more is read.

    Returns:
        FastAPI router with share routes.
    """
    router = APIRouter(tags=['shares'])
    base_url = public_url.rstrip('/')

    @router.post('/api/v1/shares', status_code=201)
    async def create_share(
        file: UploadFile | None = File(default=None),
        expires: str | None = Form(default=None),
        password: str | None = Form(default=None),
        sender_name: str | None = Form(default=None),
    ):
        """Upload a file and create a share.

        ``expires`` is an ISO-8601 timestamp or a relative token (1h, 1d,
        7d, 30d).  Returns 201 with the share id, expiry and link.
        """
        if file is None:
            return _error_response(ShareValidationError('A file is required.'))
        data = await file.read(max_upload_bytes + 1)
        try:
            record = await ingestion.create_share(
                data,
                file.filename,
                expires=expires,
                password=password,
                content_type=file.content_type,
                sender_name=sender_name,
            )
        except ShareError as exc:
            return _error_response(exc)
        finally:
            await file.close()

        return {
            'id': record.id,
            'expires_at': record.expires_at.isoformat(),
            'share_url': f'{base_url}/download/{record.id}',
        }

    @router.get('/api/v1/shares/{share_id}')
    async def get_share_status(share_id: str):
        """Share metadata; expired shares answer with ``is_expired: true``."""
        try:
            status = await retrieval.get_status(share_id)
        except ShareError as exc:
            return _error_response(exc)
        return status.to_dict()

    @router.post('/api/v1/shares/{share_id}/unlock')
    async def unlock_share(share_id: str, body: UnlockRequest | None = None):
        """Verify access and mint a short-lived retrieval handle."""
        password = body.password if body else None
        try:
            result = await retrieval.unlock(share_id, password)
        except ShareError as exc:
            return _error_response(exc)

        token = result.handle.token
        return {
            'retrieval_handle': token,
            'download_url': f'{base_url}/api/v1/downloads/{token}',
            'handle_expires_at': result.handle.expires_at.isoformat(),
            'original_name': result.record.original_name,
            'size_bytes': result.record.size_bytes,
        }

    @router.get('/api/v1/downloads/{handle}')
    async def download(handle: str):
        """Stream the blob behind a valid retrieval handle."""
        try:
            payload = await retrieval.redeem(handle)
        except ShareError as exc:
            return _error_response(exc)

        return Response(
            content=payload.data,
            media_type=payload.content_type,
            headers={
                'Content-Disposition': content_disposition(payload.file_name),
                'Cache-Control': 'no-store',
            },
        )

    return router
