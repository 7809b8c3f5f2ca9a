"""Identity providers consulted before every mutation."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """The authenticated caller."""

    id: str
    email: str = ""


class IdentityProvider(Protocol):
    async def current_identity(self) -> Identity | None:
        """Return the authenticated caller, or ``None``."""
        ...


class StaticIdentityProvider:
    """Always answers with the identity it was built with (or ``None``)."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    async def current_identity(self) -> Identity | None:
        return self._identity


class SupabaseIdentityProvider:
    """Resolves the session token against ``{url}/auth/v1/user``.

    Any failure, including an expired token, counts as "no caller".
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{url.rstrip('/')}/auth/v1/user"
        self._api_key = api_key
        self._access_token = access_token
        self._transport = transport

    async def current_identity(self) -> Identity | None:
        if not self._access_token:
            return None
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token}",
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as http:
                resp = await http.get(self._url, headers=headers)
            resp.raise_for_status()
            data = resp.json()
            return Identity(id=str(data["id"]), email=data.get("email") or "")
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            logger.warning("Could not resolve the current session: %s", exc)
            return None
