"""
OpenRouter client.

OpenRouter provides access to many LLM models through a unified API.
Uses OpenAI-compatible format, so it also works against any
OpenAI-style /chat/completions endpoint via base_url.
https://openrouter.ai/docs
"""

import json
import os
import urllib.request
import urllib.error

from .base import LLMClient, LLMResponse, Message, TokenUsage


# Short names for common models
OPENROUTER_MODELS = {
    "claude-3.5-sonnet": "anthropic/claude-3.5-sonnet",
    "claude-3-haiku": "anthropic/claude-3-haiku",
    "gpt-4o": "openai/gpt-4o",
    "gpt-4o-mini": "openai/gpt-4o-mini",
    "llama-3.1-70b": "meta-llama/llama-3.1-70b-instruct",
    "llama-3.1-8b": "meta-llama/llama-3.1-8b-instruct",
    "mistral-large": "mistralai/mistral-large",
}

DEFAULT_MODEL = "gpt-4o-mini"


class OpenRouterClient(LLMClient):
    """
    Client for OpenRouter API.

    Requires OPENROUTER_API_KEY environment variable.
    Cached prompt tokens come from usage.prompt_tokens_details.cached_tokens.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: int = 120,
        site_name: str = "roleplay",
    ):
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY")
        self.base_url = base_url.rstrip("/")
        self._model = self._resolve_model(model)
        self.timeout = timeout
        self.site_name = site_name

    def _resolve_model(self, model: str) -> str:
        """Resolve short model name to full path."""
        if "/" in model:
            return model
        return OPENROUTER_MODELS.get(model, model)

    @property
    def model_name(self) -> str:
        return self._model

    def _make_request(self, endpoint: str, data: dict) -> dict:
        """POST to the API and decode the JSON body."""
        if not self.api_key:
            raise ValueError(
                "OpenRouter API key not set. "
                "Set OPENROUTER_API_KEY environment variable or pass api_key."
            )

        req = urllib.request.Request(
            f"{self.base_url}/{endpoint}",
            data=json.dumps(data).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "X-Title": self.site_name,
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8")
            raise ConnectionError(
                f"OpenRouter API error {e.code}: {error_body}"
            )
        except urllib.error.URLError as e:
            raise ConnectionError(f"Cannot connect to OpenRouter: {e}")

    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Send chat completion request."""
        api_messages = []
        if system:
            api_messages.append({"role": "system", "content": system})
        for msg in messages:
            api_messages.append({"role": msg.role, "content": msg.content})

        response = self._make_request("chat/completions", {
            "model": self._model,
            "messages": api_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })

        try:
            choice = response["choices"][0]
        except (KeyError, IndexError):
            raise ConnectionError(f"Malformed OpenRouter response: {response}")

        usage = response.get("usage") or {}
        details = usage.get("prompt_tokens_details") or {}

        return LLMResponse(
            content=choice["message"].get("content") or "",
            usage=TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                cached_prompt_tokens=details.get("cached_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            finish_reason=choice.get("finish_reason") or "stop",
        )
