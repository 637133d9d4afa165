"""HTTP transport for the Firestore REST API."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from firestore_rest.config import settings


@dataclass
class TransportResponse:
    """Status plus decoded body (JSON when possible, raw text otherwise, None if empty)."""

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """What the client needs from an HTTP layer."""

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        form: dict[str, str] | None = None,
    ) -> TransportResponse: ...


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


class HttpxTransport:
    """Transport over httpx.AsyncClient. Timeouts and connection errors are httpx's."""

    def __init__(self, timeout: float | None = None, client: httpx.AsyncClient | None = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.FIRESTORE_HTTP_TIMEOUT
        )

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        form: dict[str, str] | None = None,
    ) -> TransportResponse:
        response = await self.client.request(
            method,
            url,
            headers=headers,
            json=json_body,
            params=params,
            data=form,
        )
        return TransportResponse(status=response.status_code, body=_decode_body(response))

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self.client.aclose()
