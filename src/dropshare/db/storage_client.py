"""Async Supabase Storage client.

Covers the three object operations the blob store needs: upload without
overwrite, authenticated download and removal.  Error responses go through
the same ``raise_for_error`` translation as the PostgREST client.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from .errors import SupabaseTimeoutError
from .supabase_client import raise_for_error


class SupabaseStorageClient:
    """Service-role client for one Supabase Storage bucket."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        bucket: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")
        if not bucket:
            raise ValueError("bucket is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._bucket = bucket
        self._timeout_seconds = float(timeout_seconds)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def base_storage_url(self) -> str:
        return f"{self._supabase_url}/storage/v1"

    def _object_url(self, path: str) -> str:
        return f"{self.base_storage_url}/object/{self._bucket}/{quote(path, safe='/')}"

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, url, timeout=self._timeout_seconds, **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise SupabaseTimeoutError(
                status_code=504,
                message=f"storage {method} timed out",
            ) from exc
        raise_for_error(resp)
        return resp

    async def upload(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload an object. Existing objects are never overwritten.

        Returns the storage key reported by Supabase.
        """
        resp = await self._request(
            "POST",
            self._object_url(path),
            content=data,
            headers={
                **self._auth_headers(),
                "Content-Type": content_type,
                "x-upsert": "false",
            },
        )
        payload = resp.json()
        if isinstance(payload, dict) and payload.get("Key"):
            return str(payload["Key"])
        return f"{self._bucket}/{path}"

    async def download(self, path: str) -> bytes:
        resp = await self._request(
            "GET",
            self._object_url(path),
            headers=self._auth_headers(),
        )
        return resp.content

    async def remove(self, paths: list[str]) -> list[dict[str, Any]]:
        resp = await self._request(
            "DELETE",
            f"{self.base_storage_url}/object/{self._bucket}",
            json={"prefixes": paths},
            headers=self._auth_headers(),
        )
        payload = resp.json()
        return payload if isinstance(payload, list) else []

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
