"""Chat completions client tests against an in-process httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest
from src.libs.llm_client import (
    ChatCompletionClient,
    LLMAPIError,
    LLMClientError,
    LLMMalformedResponseError,
    LLMRateLimitError,
    LLMServerError,
    LLMTruncatedResponseError,
)

MESSAGES = [{"role": "user", "content": "Score this text."}]


def completion_body(content: object = '{"criteria": []}', finish_reason: str = "stop") -> dict:
    return {
        "model": "test-model",
        "choices": [{"message": {"content": content}, "finish_reason": finish_reason}],
    }


def make_client(handler, **kwargs) -> ChatCompletionClient:
    return ChatCompletionClient(
        api_key="test-key",
        base_url="https://llm.test/v1/",
        model="test-model",
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_successful_completion_is_parsed() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=completion_body("hello"))

    response = await make_client(handler, max_retries=1).chat_completion(MESSAGES)

    assert response.content == "hello"
    assert response.model == "test-model"
    assert response.finish_reason == "stop"
    request = seen[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    sent = json.loads(request.content)
    assert sent["model"] == "test-model"
    assert sent["temperature"] == 0.0
    assert "response_format" not in sent


async def test_json_output_requests_json_object_format() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=completion_body())

    await make_client(handler, max_retries=1).chat_completion(MESSAGES, json_output=True)

    assert seen[0]["response_format"] == {"type": "json_object"}


async def test_content_parts_are_joined() -> None:
    parts = [
        {"type": "text", "text": '{"criteria": '},
        {"type": "image_url", "image_url": {"url": "https://x"}},
        {"type": "text", "text": "[]}"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=completion_body(parts))

    response = await make_client(handler, max_retries=1).chat_completion(MESSAGES)

    assert response.content == '{"criteria": []}'


async def test_client_errors_are_not_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, text="bad key")

    with pytest.raises(LLMAPIError) as exc_info:
        await make_client(handler, max_retries=3).chat_completion(MESSAGES)

    assert exc_info.value.status_code == 401
    assert calls == 1


async def test_rate_limit_is_retried_then_succeeds() -> None:
    responses = [httpx.Response(429), httpx.Response(200, json=completion_body("ok"))]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    response = await make_client(handler, max_retries=2).chat_completion(MESSAGES)

    assert response.content == "ok"


async def test_server_errors_exhaust_every_attempt() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    with pytest.raises(LLMServerError) as exc_info:
        await make_client(handler, max_retries=3).chat_completion(MESSAGES)

    assert exc_info.value.status_code == 503
    assert calls == 3


async def test_exhausted_retries_raise_last_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    with pytest.raises(LLMRateLimitError):
        await make_client(handler, max_retries=1).chat_completion(MESSAGES)


async def test_malformed_payload_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(LLMMalformedResponseError):
        await make_client(handler, max_retries=1).chat_completion(MESSAGES)


async def test_non_json_body_is_a_typed_error_and_not_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(LLMMalformedResponseError, match="not JSON"):
        await make_client(handler, max_retries=3).chat_completion(MESSAGES)

    assert calls == 1


async def test_truncated_completion_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=completion_body('{"criteria": [', finish_reason="length"))

    with pytest.raises(LLMTruncatedResponseError):
        await make_client(handler, max_retries=1).chat_completion(MESSAGES)


async def test_transport_failure_is_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=completion_body("recovered"))

    response = await make_client(handler, max_retries=2).chat_completion(MESSAGES)

    assert response.content == "recovered"
    assert calls == 2


async def test_missing_api_key_fails_fast() -> None:
    client = ChatCompletionClient(api_key="", base_url="https://llm.test/v1")

    with pytest.raises(LLMClientError):
        await client.chat_completion(MESSAGES)
