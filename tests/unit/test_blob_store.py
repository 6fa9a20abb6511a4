"""Tests for the blob store backends."""

from __future__ import annotations

import json

import httpx
import pytest

from dropshare.db.storage_client import SupabaseStorageClient
from dropshare.errors import BlobKeyExists
from dropshare.protocols import BlobStore
from dropshare.storage import InMemoryBlobStore, SupabaseBlobStore


def _storage(handler) -> tuple[httpx.AsyncClient, SupabaseStorageClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = SupabaseStorageClient(
        supabase_url='https://test.supabase.co',
        service_role_key='test-key',
        bucket='shares',
        http_client=http,
    )
    return http, client


# ── In-memory ────────────────────────────────────────────────────────


def test_both_backends_satisfy_protocol():
    assert isinstance(InMemoryBlobStore(), BlobStore)
    _, client = _storage(lambda request: httpx.Response(200))
    assert isinstance(SupabaseBlobStore(client), BlobStore)


@pytest.mark.asyncio
async def test_in_memory_put_get_delete():
    store = InMemoryBlobStore()
    assert await store.put('blobs/a', b'abc', content_type='text/plain') == 'blobs/a'
    assert await store.get('blobs/a') == b'abc'
    await store.delete('blobs/a')
    await store.delete('blobs/a')
    assert await store.get('blobs/a') is None


@pytest.mark.asyncio
async def test_in_memory_refuses_overwrite():
    store = InMemoryBlobStore()
    await store.put('blobs/a', b'first', content_type='text/plain')
    with pytest.raises(BlobKeyExists) as exc_info:
        await store.put('blobs/a', b'second', content_type='text/plain')
    assert exc_info.value.key == 'blobs/a'
    assert await store.get('blobs/a') == b'first'


# ── Supabase Storage ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_supabase_put_uploads_without_upsert():
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['method'] = request.method
        seen['url'] = str(request.url)
        seen['headers'] = dict(request.headers)
        seen['body'] = request.content
        return httpx.Response(200, json={'Key': 'shares/blobs/abc'})

    http, client = _storage(handler)
    async with http:
        key = await SupabaseBlobStore(client).put('blobs/abc', b'data', content_type='image/png')

    assert key == 'blobs/abc'
    assert seen['method'] == 'POST'
    assert seen['url'] == 'https://test.supabase.co/storage/v1/object/shares/blobs/abc'
    assert seen['headers']['x-upsert'] == 'false'
    assert seen['headers']['content-type'] == 'image/png'
    assert seen['headers']['authorization'] == 'Bearer test-key'
    assert seen['body'] == b'data'


@pytest.mark.asyncio
async def test_supabase_duplicate_object_maps_to_key_exists():
    async def handler(request: httpx.Request) -> httpx.Response:
        # Storage reports duplicates as 400 with the real status in the body.
        return httpx.Response(400, json={
            'statusCode': '409', 'error': 'Duplicate', 'message': 'The resource already exists',
        })

    http, client = _storage(handler)
    async with http:
        with pytest.raises(BlobKeyExists):
            await SupabaseBlobStore(client).put('blobs/abc', b'x', content_type='text/plain')


@pytest.mark.asyncio
async def test_supabase_get_missing_returns_none():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={
            'statusCode': '404', 'error': 'not_found', 'message': 'Object not found',
        })

    http, client = _storage(handler)
    async with http:
        assert await SupabaseBlobStore(client).get('blobs/missing') is None


@pytest.mark.asyncio
async def test_supabase_get_returns_bytes():
    async def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == 'GET'
        return httpx.Response(200, content=b'\x00\x01binary')

    http, client = _storage(handler)
    async with http:
        assert await SupabaseBlobStore(client).get('blobs/abc') == b'\x00\x01binary'


@pytest.mark.asyncio
async def test_supabase_delete_sends_prefixes():
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['method'] = request.method
        seen['url'] = str(request.url)
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=[{'name': 'blobs/abc'}])

    http, client = _storage(handler)
    async with http:
        await SupabaseBlobStore(client).delete('blobs/abc')

    assert seen['method'] == 'DELETE'
    assert seen['url'] == 'https://test.supabase.co/storage/v1/object/shares'
    assert seen['body'] == {'prefixes': ['blobs/abc']}
