"""Tests for the PostgREST-backed share registry."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from dropshare.db.share_registry import SupabaseShareRegistry
from dropshare.db.supabase_client import SupabaseClient
from dropshare.errors import ShareConflict
from dropshare.protocols import ShareRegistry
from dropshare.sharing.model import ShareRecord

T = datetime(2030, 1, 1, tzinfo=timezone.utc)


def _make_registry(handler) -> tuple[httpx.AsyncClient, SupabaseShareRegistry]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SupabaseClient(
        supabase_url="https://test.supabase.co",
        service_role_key="test-key",
        http_client=http,
    )
    return http, SupabaseShareRegistry(client)


def _record() -> ShareRecord:
    return ShareRecord(
        id="share-1",
        original_name="a.txt",
        size_bytes=3,
        blob_key="blobs/abc",
        expires_at=T + timedelta(days=1),
        password_hash="$2b$04$hash",
        created_at=T,
    )


def _row(**overrides) -> dict[str, Any]:
    row = _record().to_row()
    row["expires_at"] = "2030-01-02T00:00:00+00:00"
    row.update(overrides)
    return row


def test_satisfies_protocol():
    _, registry = _make_registry(lambda request: httpx.Response(200))
    assert isinstance(registry, ShareRegistry)


@pytest.mark.asyncio
async def test_create_inserts_row():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[seen["body"]])

    http, registry = _make_registry(handler)
    async with http:
        created = await registry.create(_record())

    assert seen["path"] == "/rest/v1/file_shares"
    assert seen["body"]["id"] == "share-1"
    assert seen["body"]["password_hash"] == "$2b$04$hash"
    assert seen["body"]["download_count"] == 0
    assert created == _record()


@pytest.mark.asyncio
async def test_create_duplicate_raises_conflict():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={
            "code": "23505",
            "message": 'duplicate key value violates unique constraint "file_shares_pkey"',
        })

    http, registry = _make_registry(handler)
    async with http:
        with pytest.raises(ShareConflict) as exc_info:
            await registry.create(_record())
    assert exc_info.value.share_id == "share-1"


@pytest.mark.asyncio
async def test_get_by_id_found_and_missing():
    rows: list[dict[str, Any]] = [_row()]
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=rows)

    http, registry = _make_registry(handler)
    async with http:
        found = await registry.get_by_id("share-1")
        rows.clear()
        missing = await registry.get_by_id("share-2")

    assert found is not None
    assert found.expires_at == T + timedelta(days=1)
    assert found.password_required
    assert missing is None
    assert seen["params"]["id"] == "eq.share-2"
    assert seen["params"]["limit"] == "1"


@pytest.mark.asyncio
async def test_record_access_calls_atomic_function():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[_row(download_count=4, last_accessed_at=T.isoformat())])

    http, registry = _make_registry(handler)
    async with http:
        updated = await registry.record_access("share-1", at=T)

    assert seen["path"] == "/rest/v1/rpc/record_share_access"
    assert seen["body"] == {"p_share_id": "share-1", "p_accessed_at": T.isoformat()}
    assert updated.download_count == 4
    assert updated.last_accessed_at == T


@pytest.mark.asyncio
async def test_record_access_unknown_share():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    http, registry = _make_registry(handler)
    async with http:
        assert await registry.record_access("nope") is None
