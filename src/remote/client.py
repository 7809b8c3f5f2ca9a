"""Async client for a PostgREST table (the Supabase REST surface).

Only the handful of verbs the post store needs: filtered select, insert,
update and delete.  Every failure, transport or HTTP, surfaces as
:class:`~blogstore.errors.RemoteRequestError`.  No timeout, retry or
backoff is applied here.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx
from blogstore.errors import RemoteRequestError

logger = logging.getLogger(__name__)

Filter = tuple[str, str]


def _literal(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def eq(value: object) -> str:
    return f"eq.{_literal(value)}"


def neq(value: object) -> str:
    return f"neq.{_literal(value)}"


def ilike_any(columns: list[str], term: str) -> Filter:
    """``or`` filter matching *term* anywhere in any of *columns*.

    The pattern is double-quoted so commas and parentheses in the term do
    not break the PostgREST filter grammar.
    """
    escaped = term.replace("\\", "\\\\").replace('"', '\\"')
    clauses = ",".join(f'{col}.ilike."*{escaped}*"' for col in columns)
    return ("or", f"({clauses})")


class PostgrestClient:
    """Table-scoped client for ``{url}/rest/v1/{table}``.

    Args:
        url: Project URL, e.g. ``https://abc.supabase.co``.
        api_key: Anonymous (publishable) API key.
        table: Table name.
        access_token: Caller's session token; falls back to the API key.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        table: str = "blog_posts",
        access_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.table = table
        self._http = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token or api_key}",
                "Content-Type": "application/json",
            },
            timeout=None,
            transport=transport,
        )

    async def __aenter__(self) -> PostgrestClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(
        self,
        method: str,
        params: list[Filter],
        *,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = await self._http.request(
                method, f"/{self.table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise RemoteRequestError(f"{method} {self.table} failed: {exc}") from exc

        if resp.is_error:
            code, message = "", resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                code = str(body.get("code") or "")
                message = body.get("message") or message
            raise RemoteRequestError(
                f"{method} {self.table} returned {resp.status_code}: {message}",
                status_code=resp.status_code,
                code=code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteRequestError(
                f"{method} {self.table} returned a non-JSON body",
                status_code=resp.status_code,
            ) from exc

    async def select(
        self,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params: list[Filter] = [("select", columns), *(filters or [])]
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        return await self._send("GET", params) or []

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = await self._send("POST", [], json=[row], prefer="return=representation")
        if not rows:
            raise RemoteRequestError(f"POST {self.table} returned no row")
        return rows[0]

    async def update(self, filters: list[Filter], values: dict[str, Any]) -> list[dict[str, Any]]:
        return (
            await self._send("PATCH", filters, json=values, prefer="return=representation")
            or []
        )

    async def delete(self, filters: list[Filter]) -> list[dict[str, Any]]:
        return await self._send("DELETE", filters, prefer="return=representation") or []
