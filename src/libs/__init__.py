"""Shared library helpers."""

from src.libs.llm_client import (
    ChatCompletionClient,
    LLMClientError,
    LLMClientProtocol,
    LLMResponse,
)

__all__ = [
    "ChatCompletionClient",
    "LLMClientError",
    "LLMClientProtocol",
    "LLMResponse",
]
