"""Tests for store-call deadlines and error translation."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from dropshare.db.errors import SupabaseError, SupabaseTimeoutError
from dropshare.errors import (
    BlobKeyExists,
    BlobStoreError,
    ShareConflict,
    ShareInternalError,
)
from dropshare.sharing.bounded import bounded_call


async def _raise(exc):
    raise exc


async def _value(v):
    return v


@pytest.mark.asyncio
async def test_returns_result():
    assert await bounded_call(_value(42), timeout=1, operation='op') == 42


@pytest.mark.asyncio
async def test_deadline_is_retryable():
    with pytest.raises(ShareInternalError) as exc_info:
        await bounded_call(asyncio.sleep(5), timeout=0.01, operation='registry.get')
    assert exc_info.value.retryable is True
    assert 'registry.get timed out' in exc_info.value.detail


@pytest.mark.asyncio
async def test_client_timeout_is_retryable():
    err = SupabaseTimeoutError(status_code=504, message='timed out')
    with pytest.raises(ShareInternalError) as exc_info:
        await bounded_call(_raise(err), timeout=1, operation='op')
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
@pytest.mark.parametrize('exc', [
    SupabaseError(status_code=500, message='boom'),
    BlobStoreError('disk full'),
    httpx.ConnectError('refused'),
    OSError('io'),
])
async def test_store_failures_become_internal(exc):
    with pytest.raises(ShareInternalError) as exc_info:
        await bounded_call(_raise(exc), timeout=1, operation='op')
    assert exc_info.value.retryable is False
    assert exc_info.value.__cause__ is exc


@pytest.mark.asyncio
@pytest.mark.parametrize('exc', [ShareConflict('id'), BlobKeyExists('blobs/x')])
async def test_domain_errors_pass_through(exc):
    with pytest.raises(type(exc)):
        await bounded_call(_raise(exc), timeout=1, operation='op')
