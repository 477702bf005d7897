"""LLM client boundary.

Every stage talks to language models through ``LLMClient.generate_content``,
which returns the reply text together with the name of the model that
produced it. The Anthropic implementation follows the same calling pattern
everywhere: lazy SDK import, one ``messages.create`` call per prompt,
concatenated text blocks as the reply.

Public API:
    LLMResponse: Reply text, model name and token usage
    MissingAPIKeyError: Raised when no API key is configured
    LLMClient: Abstract client interface
    AnthropicClient: Client backed by the ``anthropic`` SDK
    RandomModelClient: Picks one of several clients per call
    extract_json: Pull a JSON object out of a reply
"""

from __future__ import annotations

import json
import logging
import os
import random
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


class MissingAPIKeyError(OSError):
    """No API key is configured for the model provider."""


@dataclass
class LLMResponse:
    """A single model reply."""

    content: str
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient(ABC):
    """Interface for anything that turns a prompt into text."""

    @abstractmethod
    def generate_content(self, prompt: str) -> LLMResponse:
        """Send ``prompt`` and return the reply. Raises on transport failure."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name recorded on artifacts this client produces."""

    def close(self) -> None:
        """Release resources. Default: nothing to release."""


class AnthropicClient(LLMClient):
    """Claude-backed client.

    Requires the ``anthropic`` package and an API key (argument or
    ``ANTHROPIC_API_KEY``). The SDK client is created lazily on first use
    and shared across threads.

    Args:
        model: Model identifier
        max_tokens: Reply token cap
        api_key: Overrides ``ANTHROPIC_API_KEY``
        on_usage: Called with every response, e.g. to count tokens
    """

    def __init__(
        self,
        model: str,
        max_tokens: int = 16000,
        api_key: str | None = None,
        on_usage: Callable[[LLMResponse], None] | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._on_usage = on_usage
        self._client: Any = None
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self.model

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is None:
                api_key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
                if not api_key:
                    raise MissingAPIKeyError("ANTHROPIC_API_KEY environment variable is required")

                import anthropic  # type: ignore[import-untyped]

                self._client = anthropic.Anthropic(api_key=api_key)
            return self._client

    def generate_content(self, prompt: str) -> LLMResponse:
        client = self._get_client()
        message = client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in message.content if getattr(block, "type", "text") == "text"
        )
        usage = getattr(message, "usage", None)
        response = LLMResponse(
            content=text,
            model_name=self.model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )
        if self._on_usage is not None:
            self._on_usage(response)
        return response

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


class RandomModelClient(LLMClient):
    """Spreads calls across several clients, one random pick per call.

    The reply's ``model_name`` identifies which client answered, so model
    usage can be tracked per artifact.
    """

    def __init__(self, clients: list[LLMClient], rng: random.Random | None = None):
        if not clients:
            raise ValueError("RandomModelClient needs at least one client")
        self.clients = list(clients)
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return "random(" + ",".join(c.model_name for c in self.clients) + ")"

    def pick(self) -> LLMClient:
        with self._lock:
            return self._rng.choice(self.clients)

    def generate_content(self, prompt: str) -> LLMResponse:
        return self.pick().generate_content(prompt)

    def close(self) -> None:
        for client in self.clients:
            client.close()


def extract_json(text: str) -> dict:
    """Extract a JSON object from LLM response text.

    Handles raw JSON, fenced ```json blocks, and prose around a single
    ``{...}`` block.

    Raises:
        json.JSONDecodeError: If no valid JSON object can be extracted
    """
    stripped = text.strip()

    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", stripped, re.DOTALL)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass

    brace_match = re.search(r"\{.*\}", stripped, re.DOTALL)
    if brace_match:
        try:
            return json.loads(brace_match.group(0))
        except json.JSONDecodeError:
            pass

    raise json.JSONDecodeError(
        f"No valid JSON found in response: {stripped[:200]}",
        stripped,
        0,
    )


__all__ = [
    "LLMResponse",
    "MissingAPIKeyError",
    "LLMClient",
    "AnthropicClient",
    "RandomModelClient",
    "extract_json",
]
