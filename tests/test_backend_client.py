from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from voice_practice.backend import BackendClient, StaticCredentials
from voice_practice.errors import BackendError, NetworkError


def _client(handler, **kwargs) -> BackendClient:
    return BackendClient("http://tutor.test/", transport=httpx.MockTransport(handler), **kwargs)


def test_chat_posts_message_with_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": "Nice to meet you!"})

    async def _run():
        async with _client(handler, credentials=StaticCredentials("tok-123")) as client:
            return await client.chat("hello there")

    reply = asyncio.run(_run())

    assert reply.response == "Nice to meet you!"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/chat"
    assert request.headers["Authorization"] == "Bearer tok-123"
    assert json.loads(request.content) == {"message": "hello there"}


def test_analyze_sends_original_text_and_user_id() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"accuracy": 87.6, "corrections": ["Say 'went', not 'goed'."]})

    async def _run():
        async with _client(handler, user_id="learner-7") as client:
            return await client.analyze_speech("I goed home", "I goed home")

    analysis = asyncio.run(_run())

    assert analysis.accuracy == 88
    assert analysis.corrections == ["Say 'went', not 'goed'."]
    assert bodies == [{"transcript": "I goed home", "original_text": "I goed home", "user_id": "learner-7"}]


def test_no_authorization_header_without_credential() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": "ok"})

    async def _run():
        async with _client(handler) as client:
            await client.chat("hi")

    asyncio.run(_run())
    assert "Authorization" not in seen[0].headers


def test_accuracy_is_clamped_to_percentage_range() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"accuracy": 140, "corrections": []})

    async def _run():
        async with _client(handler) as client:
            return await client.analyze_speech("a", "a")

    assert asyncio.run(_run()).accuracy == 100


def test_non_success_status_raises_backend_error_with_detail() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, json={"detail": "Token expired"})

    async def _run():
        async with _client(handler) as client:
            await client.chat("hi")

    with pytest.raises(BackendError) as excinfo:
        asyncio.run(_run())

    assert excinfo.value.status == 401
    assert excinfo.value.detail == "Token expired"
    assert calls == 1


def test_error_detail_falls_back_to_error_field_and_text() -> None:
    responses = iter(
        [
            httpx.Response(500, json={"error": "Failed to process chat message"}),
            httpx.Response(502, text="Bad Gateway"),
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    async def _run() -> list[BackendError]:
        errors: list[BackendError] = []
        async with _client(handler) as client:
            for _ in range(2):
                try:
                    await client.chat("hi")
                except BackendError as exc:
                    errors.append(exc)
        return errors

    first, second = asyncio.run(_run())
    assert (first.status, first.detail) == (500, "Failed to process chat message")
    assert (second.status, second.detail) == (502, "Bad Gateway")


def test_malformed_success_body_is_a_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    async def _run():
        async with _client(handler) as client:
            await client.chat("hi")

    with pytest.raises(BackendError) as excinfo:
        asyncio.run(_run())
    assert excinfo.value.detail == "malformed response"


def test_transport_failure_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def _run():
        async with _client(handler) as client:
            await client.analyze_speech("a", "a")

    with pytest.raises(NetworkError):
        asyncio.run(_run())


def test_timeout_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async def _run():
        async with _client(handler) as client:
            await client.chat("hi")

    with pytest.raises(NetworkError, match="timed out"):
        asyncio.run(_run())
