"""LLM backend clients for character replies."""

import logging
import os
from typing import Literal

from .base import LLMClient, LLMResponse, Message, TokenUsage

logger = logging.getLogger(__name__)

__all__ = [
    "LLMClient",
    "LLMResponse",
    "Message",
    "TokenUsage",
    "MockLLMClient",
    "create_llm_client",
    "detect_backend",
    "BACKENDS",
]


# -----------------------------------------------------------------------------
# Mock Client for Testing
# -----------------------------------------------------------------------------

class MockLLMClient(LLMClient):
    """
    Mock LLM client for testing and offline use.

    Allows configuring responses without actual API calls.
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        model_name: str = "mock-model",
        cached_tokens: list[int] | None = None,
    ):
        """
        Initialize mock client.

        Args:
            responses: List of responses to return in order.
                       Cycles through if more calls than responses.
            model_name: Name to report as model_name property.
            cached_tokens: Cached prompt tokens to report per call,
                           cycled like responses. Defaults to no caching.
        """
        self._responses = responses or ["Mock response"]
        self._cached = cached_tokens or [0]
        self._call_count = 0
        self._model_name = model_name
        self.calls: list[dict] = []  # Record of all calls made

    @property
    def model_name(self) -> str:
        return self._model_name

    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Return next mock response."""
        self.calls.append({
            "method": "chat",
            "messages": messages,
            "system": system,
        })
        index = self._call_count
        self._call_count += 1

        content = self._responses[index % len(self._responses)]
        cached = self._cached[index % len(self._cached)]
        prompt = len((system or "").split()) + sum(len(m.content.split()) for m in messages)
        completion = len(content.split())
        return LLMResponse(
            content=content,
            usage=TokenUsage(
                prompt_tokens=prompt,
                completion_tokens=completion,
                cached_prompt_tokens=cached,
                total_tokens=prompt + completion,
            ),
        )

    def set_responses(self, responses: list[str]) -> None:
        """Update the list of responses."""
        self._responses = responses
        self._call_count = 0

    def reset(self) -> None:
        """Reset call count and recorded calls."""
        self._call_count = 0
        self.calls.clear()


# -----------------------------------------------------------------------------
# Backend Detection and Factory
# -----------------------------------------------------------------------------

BackendType = Literal["claude", "openrouter", "mock", "auto"]

BACKENDS = ("claude", "openrouter", "mock")


def detect_backend() -> str | None:
    """Pick a backend from whichever API key is present."""
    if os.environ.get("ANTHROPIC_API_KEY"):
        return "claude"
    if os.environ.get("OPENROUTER_API_KEY"):
        return "openrouter"
    return None


def create_llm_client(
    backend: BackendType = "auto",
    model: str | None = None,
) -> tuple[str, LLMClient | None]:
    """
    Create an LLM client for the specified backend.

    Args:
        backend: Backend to use ("auto" picks from environment keys)
        model: Model override; each backend has its own default

    Returns:
        Tuple of (backend_name, client). Client may be None if unavailable.
    """
    if backend == "auto":
        detected = detect_backend()
        if detected is None:
            logger.warning("No API key found (ANTHROPIC_API_KEY / OPENROUTER_API_KEY)")
            return ("none", None)
        backend = detected

    if backend == "mock":
        return ("mock", MockLLMClient(model_name=model or "mock-model"))

    if backend == "claude":
        try:
            from .claude import ClaudeClient, DEFAULT_MODEL
            return ("claude", ClaudeClient(model=model or DEFAULT_MODEL))
        except Exception as e:
            logger.error("Claude backend unavailable: %s", e)
            return ("claude", None)

    if backend == "openrouter":
        from .openrouter import OpenRouterClient, DEFAULT_MODEL
        client = OpenRouterClient(model=model or DEFAULT_MODEL)
        if not client.api_key:
            logger.error("OpenRouter backend unavailable: OPENROUTER_API_KEY not set")
            return ("openrouter", None)
        return ("openrouter", client)

    raise ValueError(f"Unknown backend: {backend}")
