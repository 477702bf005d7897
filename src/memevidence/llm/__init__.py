"""LLM client boundary."""

from __future__ import annotations

from .client import (
    AnthropicClient,
    LLMClient,
    LLMResponse,
    MissingAPIKeyError,
    RandomModelClient,
    extract_json,
)

__all__ = [
    "AnthropicClient",
    "LLMClient",
    "LLMResponse",
    "MissingAPIKeyError",
    "RandomModelClient",
    "extract_json",
]
