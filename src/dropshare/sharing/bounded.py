"""Timeout and error translation for store calls.

Every blob store and registry call made by the share services goes through
``bounded_call``: it cannot block longer than the configured timeout, and
store-level failures leave it only as ``ShareInternalError``.  Domain
errors (``ShareError``) and blob-key collisions pass through unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

import httpx

from dropshare.db.errors import SupabaseError, SupabaseTimeoutError
from dropshare.errors import (
    BlobKeyExists,
    BlobStoreError,
    ShareError,
    ShareInternalError,
)
from dropshare.observability.metrics import STORE_TIMEOUTS_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def bounded_call(
    awaitable: Awaitable[T],
    *,
    timeout: float,
    operation: str,
) -> T:
    """Await a store call with a deadline.

    Raises:
        ShareInternalError: retryable on timeout, non-retryable on any
            other store failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except (ShareError, BlobKeyExists):
        raise
    except (asyncio.TimeoutError, SupabaseTimeoutError):
        logger.warning('%s timed out after %.1fs', operation, timeout)
        STORE_TIMEOUTS_TOTAL.labels(operation=operation).inc()
        raise ShareInternalError(
            f'{operation} timed out.', retryable=True,
        ) from None
    except (SupabaseError, BlobStoreError, httpx.HTTPError, OSError) as exc:
        logger.error('%s failed: %s', operation, exc)
        raise ShareInternalError(f'{operation} failed.') from exc
