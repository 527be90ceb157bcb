"""
Chat completions client used by the writing scorer.

Talks to an OpenAI-compatible endpoint (OpenRouter by default). Every failure
surfaces as an ``LLMClientError`` subclass; the ``retryable`` flag on the
error decides whether another attempt is made. Transport errors, timeouts,
429 and 5xx are retried with doubling delays. Anything else, including a
200 whose body is not a usable completion, fails immediately.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog
from src.core.config import get_settings

logger = structlog.get_logger()


class LLMClientError(Exception):
    """Base exception for chat completion failures."""

    retryable = False


class LLMTransportError(LLMClientError):
    """The request never produced an HTTP response."""

    retryable = True


class LLMTimeoutError(LLMTransportError):
    """The provider did not answer within the configured timeout."""


class LLMAPIError(LLMClientError):
    """The provider answered with an unusable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LLMRateLimitError(LLMAPIError):
    retryable = True


class LLMServerError(LLMAPIError):
    retryable = True


class LLMMalformedResponseError(LLMAPIError):
    """A 200 whose body is not a chat completion."""


class LLMTruncatedResponseError(LLMMalformedResponseError):
    """The completion stopped at ``max_tokens``; its JSON cannot be trusted."""


@dataclass(slots=True)
class LLMResponse:
    content: str
    model: str
    finish_reason: str


class LLMClientProtocol(Protocol):
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.0,
        max_tokens: int = 800,
        json_output: bool = False,
    ) -> LLMResponse: ...


def parse_completion(data: Any) -> LLMResponse:
    """Pull the first choice out of a decoded chat completion body."""
    try:
        choice = data["choices"][0]
        message = choice["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMMalformedResponseError("Malformed chat completion payload", 200) from exc

    finish_reason = str(choice.get("finish_reason") or "unknown")
    if finish_reason == "length":
        raise LLMTruncatedResponseError("Completion was cut off at max_tokens", 200)

    return LLMResponse(
        content=_message_text(message),
        model=str(data.get("model") or "unknown"),
        finish_reason=finish_reason,
    )


def _message_text(message: Any) -> str:
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return content
    # Some providers return a list of typed parts
    if isinstance(content, list):
        return "".join(
            str(part.get("text") or "")
            for part in content
            if isinstance(part, dict) and part.get("type", "text") == "text"
        )
    return ""


class ChatCompletionClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_retries: int | None = None,
        timeout_seconds: int | None = None,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.endpoint = f"{(base_url or settings.llm_base_url).rstrip('/')}/chat/completions"
        self.model = model or settings.llm_model
        self.attempts = max(
            1, max_retries if max_retries is not None else settings.llm_max_retries
        )
        self.timeout = (
            timeout_seconds if timeout_seconds is not None else settings.llm_timeout_seconds
        )
        self.backoff_seconds = backoff_seconds
        self.app_name = settings.app_name
        self._transport = transport

        if not self.api_key:
            logger.warning("llm_api_key_missing", msg="LLM_API_KEY not configured")

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float = 0.0,
        max_tokens: int = 800,
        json_output: bool = False,
    ) -> LLMResponse:
        """Send one completion request, retrying transient failures on the same client."""
        if not self.api_key:
            raise LLMClientError("LLM_API_KEY not configured")

        body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_output:
            body["response_format"] = {"type": "json_object"}

        async with httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self.api_key}", "X-Title": self.app_name},
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            attempt = 1
            while True:
                try:
                    return await self._post(client, body)
                except LLMClientError as exc:
                    if not exc.retryable or attempt >= self.attempts:
                        raise
                    delay = self.backoff_seconds * 2 ** (attempt - 1)
                    await logger.awarning(
                        "llm_request_retrying",
                        error=str(exc),
                        attempt=attempt,
                        attempts=self.attempts,
                        delay_seconds=delay,
                    )
                attempt += 1
                await asyncio.sleep(delay)

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> LLMResponse:
        try:
            response = await client.post(self.endpoint, json=body)
        except httpx.TimeoutException as exc:
            raise LLMTimeoutError(f"Request timed out after {self.timeout}s") from exc
        except httpx.RequestError as exc:
            raise LLMTransportError(f"Request failed: {exc}") from exc

        status_code = response.status_code
        if status_code == 429:
            raise LLMRateLimitError("Rate limited by provider", status_code)
        if status_code >= 500:
            raise LLMServerError(f"Server error: {status_code}", status_code)
        if status_code != 200:
            raise LLMAPIError(f"API error {status_code}: {response.text[:200]}", status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMMalformedResponseError(
                "Chat completion body is not JSON", status_code
            ) from exc
        return parse_completion(data)
