"""
Base LLM client abstraction.

Defines the interface that all backends must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal


@dataclass
class Message:
    """A message in the conversation."""
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class TokenUsage:
    """Token accounting reported by the backend."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_prompt_tokens: int = 0  # Prompt tokens served from the provider's cache
    total_tokens: int = 0


@dataclass
class LLMResponse:
    """Response from the LLM."""
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str = "stop"

    @property
    def cache_hit(self) -> bool:
        return self.usage.cached_prompt_tokens > 0


class LLMClient(ABC):
    """
    Abstract base class for LLM backends.

    All backends must implement:
    - chat(): Send messages and get a response
    - model_name: The model identifier

    Transport failures are raised as ConnectionError.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """The model identifier."""
        pass

    @abstractmethod
    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation history
            system: System prompt (character profile)
            temperature: Sampling temperature
            max_tokens: Maximum response tokens

        Returns:
            LLMResponse with content and token usage
        """
        pass
