"""
Anthropic Service - LLM implementation using the Anthropic Messages API.
"""
from typing import Any, Dict, Optional
import logging

import anthropic
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from core.llm.interfaces import LLMProvider

logger = logging.getLogger(__name__)

TRANSIENT_ANTHROPIC_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class AnthropicChatProvider(LLMProvider):
    """Claude models via the Anthropic SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-3-5-sonnet-latest",
        temperature: float = 0.3,
        max_tokens: int = 4096,
        timeout: Optional[float] = None,
        client: Optional[anthropic.Anthropic] = None
    ):
        if client is None:
            client_kwargs: Dict[str, Any] = {}
            if api_key:
                client_kwargs['api_key'] = api_key
            if timeout:
                client_kwargs['timeout'] = timeout
            client = anthropic.Anthropic(**client_kwargs)
        self.client = client
        self._model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ANTHROPIC_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        stop=stop_after_attempt(6),
        reraise=True,
    )
    def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        request: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        message = self.client.messages.create(**request)

        if getattr(message, "stop_reason", None) == "max_tokens":
            logger.warning(f"Completion from {self._model} hit max_tokens; output is likely truncated")

        for block in message.content or []:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
