"""
LLM Provider Interface - Abstract base for chat completion backends.

One implementation per backend (OpenAI-compatible, Anthropic), selected once
from configuration. Callers only see prompt text in and completion text out.
"""
from abc import ABC, abstractmethod
from typing import Optional


class LLMProvider(ABC):
    """Chat completion backend: prompt text in, raw completion text out."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier used for completions."""
        pass

    @abstractmethod
    def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Send a fully assembled prompt and return the raw completion text.

        Args:
            prompt: User prompt text
            system_prompt: Optional system instructions

        Returns:
            Completion text exactly as the backend returned it ('' when empty)
        """
        pass
