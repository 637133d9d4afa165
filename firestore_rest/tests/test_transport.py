"""Tests for the httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from firestore_rest.services.transport import HttpxTransport, TransportResponse

pytestmark = pytest.mark.asyncio(loop_scope="session")


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_sends_json_and_params():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    async with mock_client(handler) as client:
        transport = HttpxTransport(client=client)
        response = await transport.send(
            "PATCH",
            "https://firestore.test/v1/doc",
            {"Authorization": "Bearer t"},
            json_body={"fields": {}},
            params={"updateMask.fieldPaths": ["a", "b"], "currentDocument.exists": "true"},
        )

    assert response == TransportResponse(200, {"ok": True})
    request = seen[0]
    assert request.method == "PATCH"
    assert request.headers["Authorization"] == "Bearer t"
    assert json.loads(request.content) == {"fields": {}}
    assert request.url.params.get_list("updateMask.fieldPaths") == ["a", "b"]
    assert request.url.params["currentDocument.exists"] == "true"


async def test_sends_form_data():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    async with mock_client(handler) as client:
        await HttpxTransport(client=client).send("POST", "https://oauth2.test/token", {}, form={"grant_type": "x"})

    assert seen[0].content == b"grant_type=x"


async def test_non_json_body_is_text():
    async with mock_client(lambda request: httpx.Response(502, text="Bad Gateway")) as client:
        response = await HttpxTransport(client=client).send("GET", "https://firestore.test/v1/x", {})
    assert response.status == 502
    assert response.body == "Bad Gateway"
    assert not response.ok


async def test_undecodable_body_is_text():
    content = b"\xff\xfe\xfa bad gateway"
    async with mock_client(lambda request: httpx.Response(502, content=content)) as client:
        response = await HttpxTransport(client=client).send("GET", "https://firestore.test/v1/x", {})
    assert response.status == 502
    assert isinstance(response.body, str)
    assert "bad gateway" in response.body


async def test_empty_body_is_none():
    async with mock_client(lambda request: httpx.Response(204)) as client:
        response = await HttpxTransport(client=client).send("DELETE", "https://firestore.test/v1/x", {})
    assert response.body is None
    assert response.ok


async def test_connection_errors_propagate():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(httpx.ConnectError):
            await HttpxTransport(client=client).send("GET", "https://firestore.test/v1/x", {})


async def test_aclose_leaves_borrowed_client_open():
    async with mock_client(lambda request: httpx.Response(200)) as client:
        transport = HttpxTransport(client=client)
        await transport.aclose()
        assert not client.is_closed


async def test_aclose_closes_owned_client():
    transport = HttpxTransport(timeout=5)
    await transport.aclose()
    assert transport.client.is_closed
