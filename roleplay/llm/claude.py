"""
Claude API client.

Wraps the Anthropic SDK in our LLMClient interface. The system prompt is
marked for prompt caching, since it carries the whole character profile
and rarely changes between turns.
"""

try:
    import anthropic
    HAS_ANTHROPIC = True
except ImportError:
    HAS_ANTHROPIC = False

from .base import LLMClient, LLMResponse, Message, TokenUsage

DEFAULT_MODEL = "claude-3-5-haiku-latest"


class ClaudeClient(LLMClient):
    """
    Client for Claude API via Anthropic SDK.

    Requires: ANTHROPIC_API_KEY environment variable
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
    ):
        if not HAS_ANTHROPIC:
            raise ImportError(
                "anthropic package not installed. "
                "Install with: pip install anthropic"
            )

        self._model = model
        self.client = anthropic.Anthropic(api_key=api_key)

    @property
    def model_name(self) -> str:
        return self._model

    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """Send chat completion request to Claude."""
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": msg.role, "content": msg.content}
                for msg in messages
                if msg.role != "system"
            ],
        }

        if system:
            kwargs["system"] = [{
                "type": "text",
                "text": system,
                "cache_control": {"type": "ephemeral"},
            }]

        try:
            response = self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise ConnectionError(f"Claude API error: {e}") from e

        content_text = "".join(
            block.text for block in response.content if block.type == "text"
        )

        usage = response.usage
        cached = getattr(usage, "cache_read_input_tokens", None) or 0
        prompt = usage.input_tokens + cached

        return LLMResponse(
            content=content_text,
            usage=TokenUsage(
                prompt_tokens=prompt,
                completion_tokens=usage.output_tokens,
                cached_prompt_tokens=cached,
                total_tokens=prompt + usage.output_tokens,
            ),
            finish_reason=response.stop_reason or "stop",
        )
