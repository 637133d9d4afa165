"""
Pytest configuration and fixtures for firestore_rest tests.

Network calls go through FakeTransport, which records every request and
replays scripted responses. Unscripted requests get a 404 NOT_FOUND, so an
empty fake behaves like an empty database for reads and deletes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from firestore_rest.client import Firestore
from firestore_rest.services.auth import StaticTokenProvider
from firestore_rest.services.transport import TransportResponse

PROJECT = "demo-project"
BASE_URL = "https://firestore.test/v1"
ROOT = f"projects/{PROJECT}/databases/(default)/documents"
UPDATE_TIME = "2024-05-01T10:00:00.000000000Z"


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    json_body: Any = None
    params: dict[str, Any] | None = None
    form: dict[str, str] | None = None


@dataclass
class Route:
    method: str
    suffix: str
    responses: list[TransportResponse] = field(default_factory=list)


class FakeTransport:
    """In-memory Transport: scripted responses keyed by method and URL suffix."""

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self._routes: list[Route] = []

    def on(self, method: str, suffix: str, *responses: tuple[int, Any]) -> None:
        """
        Script responses for requests whose URL ends with suffix.

        Responses are used in order; the last one repeats.
        """
        self._routes.append(Route(method, suffix, [TransportResponse(s, b) for s, b in responses]))

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        json_body: Any = None,
        params: dict[str, Any] | None = None,
        form: dict[str, str] | None = None,
    ) -> TransportResponse:
        self.requests.append(RecordedRequest(method, url, headers, json_body, params, form))
        for route in self._routes:
            if route.method == method and url.endswith(route.suffix):
                if len(route.responses) > 1:
                    return route.responses.pop(0)
                return route.responses[0]
        return TransportResponse(404, {"error": {"code": 404, "status": "NOT_FOUND", "message": "not found"}})

    def calls(self, method: str | None = None, suffix: str = "") -> list[RecordedRequest]:
        return [
            r for r in self.requests if (method is None or r.method == method) and r.url.endswith(suffix)
        ]

    async def aclose(self) -> None:
        pass


def wire_doc(path: str, fields: dict[str, Any] | None = None, update_time: str = UPDATE_TIME) -> dict[str, Any]:
    """A document as the REST API returns it."""
    return {
        "name": f"{ROOT}/{path}",
        "fields": fields or {},
        "createTime": update_time,
        "updateTime": update_time,
    }


def commit_ok(count: int = 1) -> dict[str, Any]:
    return {"writeResults": [{"updateTime": UPDATE_TIME}] * count, "commitTime": UPDATE_TIME}


def aborted(message: str = "Transaction aborted due to contention") -> tuple[int, Any]:
    return 409, {"error": {"code": 409, "status": "ABORTED", "message": message}}


@pytest.fixture
def transport():
    """Fresh fake transport per test."""
    return FakeTransport()


@pytest.fixture
def client(transport):
    """Firestore client wired to the fake transport with a static token."""
    return Firestore(
        PROJECT,
        token_provider=StaticTokenProvider("test-token"),
        transport=transport,
        base_url=BASE_URL,
    )


@pytest.fixture
def sleeps():
    """Recording replacement for asyncio.sleep."""
    recorded: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    fake_sleep.recorded = recorded
    return fake_sleep
