"""Async PostgREST client wrapper for Supabase.

This is the single point of Supabase table/RPC interaction for the share
registry.  The httpx client is injected (or owned by the instance) rather
than shared at module level, so every app instance controls its own
connection pool and lifetime.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    SupabaseTimeoutError,
)

Filters = Mapping[str, tuple[str, Any] | Any]


def _split_schema_table(table: str, default_schema: str) -> tuple[str, str]:
    # Accept "public.file_shares" as well as "file_shares". Supabase addresses
    # schemas via Accept-Profile/Content-Profile headers.
    if "." in table:
        schema, name = table.split(".", 1)
        return schema.strip(), name.strip()
    return default_schema, table.strip()


def _encode_filter_value(op: str, value: Any) -> str:
    if op == "is":
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    if value is None:
        raise ValueError(f"{op} does not support None; use op='is' with value=None")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filters_to_params(filters: Filters | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for col, cond in (filters or {}).items():
        if isinstance(cond, tuple) and len(cond) == 2:
            op, val = cond
        else:
            op, val = "eq", cond
        params[str(col)] = f"{op}.{_encode_filter_value(str(op), val)}"
    return params


def raise_for_error(resp: httpx.Response) -> None:
    """Translate a Supabase error response into the SupabaseError family.

    Storage sometimes answers 400 with ``{"statusCode": "409", ...}`` in the
    body; the body status wins when present.
    """
    if resp.status_code < 400:
        return

    status = resp.status_code
    message = resp.text
    code = details = hint = None

    try:
        payload = resp.json()
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error") or message
            code = payload.get("code")
            details = payload.get("details")
            hint = payload.get("hint")
            body_status = payload.get("statusCode")
            if body_status is not None and str(body_status).isdigit():
                status = int(body_status)
    except ValueError:
        pass

    err_cls: type[SupabaseError]
    if status in (401, 403):
        err_cls = SupabaseAuthError
    elif status == 404:
        err_cls = SupabaseNotFoundError
    elif status == 409 or code == "23505":
        err_cls = SupabaseConflictError
    else:
        err_cls = SupabaseError

    # Avoid including secrets in the exception string.
    raise err_cls(
        status_code=status,
        message=message,
        code=code,
        details=details,
        hint=hint,
    )


class SupabaseClient:
    """Minimal async PostgREST client (service role)."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        default_schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._default_schema = default_schema or "public"
        self._timeout_seconds = float(timeout_seconds)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    @property
    def base_rest_url(self) -> str:
        return f"{self._supabase_url}/rest/v1"

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    def _schema_headers(self, schema: str, method: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if schema:
            headers["Accept-Profile"] = schema
            if method.upper() in ("POST", "PATCH", "PUT", "DELETE"):
                headers["Content-Profile"] = schema
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, url, timeout=self._timeout_seconds, **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise SupabaseTimeoutError(
                status_code=504,
                message=f"{method} {url.rsplit('/', 1)[-1]} timed out",
            ) from exc
        raise_for_error(resp)
        return resp

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        schema, table_name = _split_schema_table(table, self._default_schema)
        params = _filters_to_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if order:
            params["order"] = order

        resp = await self._request(
            "GET",
            f"{self.base_rest_url}/{table_name}",
            params=params,
            headers={**self._auth_headers(), **self._schema_headers(schema, "GET")},
        )
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(status_code=500, message="expected list response from select")
        return payload

    async def insert(
        self,
        table: str,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        schema, table_name = _split_schema_table(table, self._default_schema)
        headers = {
            **self._auth_headers(),
            **self._schema_headers(schema, "POST"),
            "Prefer": "return=representation",
        }
        resp = await self._request(
            "POST",
            f"{self.base_rest_url}/{table_name}",
            json=dict(data),
            headers=headers,
        )
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(status_code=500, message="expected list response from insert")
        return payload

    async def rpc(
        self,
        function_name: str,
        params: Mapping[str, Any] | None = None,
        *,
        schema: str | None = None,
    ) -> Any:
        schema_name = schema or self._default_schema
        resp = await self._request(
            "POST",
            f"{self.base_rest_url}/rpc/{function_name}",
            json=dict(params or {}),
            headers={**self._auth_headers(), **self._schema_headers(schema_name, "POST")},
        )
        return resp.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
