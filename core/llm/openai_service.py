"""
OpenAI Service - LLM implementation using the OpenAI chat completions API.

Works with any OpenAI-compatible endpoint (OpenAI, Ollama, vLLM) via base_url.
"""
from typing import Any, Dict, Optional
import logging
import re

import openai
from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity import RetryCallState
from core.llm.interfaces import LLMProvider

logger = logging.getLogger(__name__)


TRANSIENT_OPENAI_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)

# Servers may declare how long to back off; honour the longest, up to this cap
MAX_DECLARED_WAIT_SECONDS = 120.0
RESET_HEADERS = ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens")

_DURATION_PART = re.compile(r"([\d.]+)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_reset_duration(value: str) -> float:
    """Seconds in a reset-timer header value such as '1s', '500ms' or '1m30s'."""
    return sum(float(amount) * _UNIT_SECONDS[unit] for amount, unit in _DURATION_PART.findall(value or ""))


def declared_wait_seconds(exc: BaseException) -> float:
    """Longest wait announced by retry-after / x-ratelimit-reset-* headers, else 0."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return 0.0

    waits = [parse_reset_duration(headers.get(name, "")) for name in RESET_HEADERS]
    try:
        waits.append(float(headers.get("retry-after", "") or 0))
    except ValueError:
        logger.debug(f"Ignoring non-numeric retry-after header: {headers.get('retry-after')!r}")
    return max(waits, default=0.0)


def _wait_for_retry(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception()
    if isinstance(exc, openai.RateLimitError):
        declared = declared_wait_seconds(exc)
        if declared > 0:
            return min(declared, MAX_DECLARED_WAIT_SECONDS)
    # 2 -> 4 -> 8 ... capped at 60s
    return wait_exponential(multiplier=1, min=2, max=60)(retry_state)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    kind = "Rate limit hit" if isinstance(exc, openai.RateLimitError) else "Transient API error"
    logger.warning(f"{kind} (attempt {retry_state.attempt_number}). Waiting {wait:.1f}s before retry. Details: {exc}")


def openai_retry(attempts: int = 6, **kwargs):
    """Return a tenacity @retry decorator for OpenAI API calls."""
    return retry(
        retry=retry_if_exception_type(TRANSIENT_OPENAI_ERRORS),
        wait=_wait_for_retry,
        stop=stop_after_attempt(attempts),
        before_sleep=_log_retry,
        reraise=True,
        **kwargs,
    )


def build_openai_client(
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None
) -> OpenAI:
    client_kwargs: Dict[str, Any] = {}
    if api_key:
        client_kwargs['api_key'] = api_key
    if base_url:
        client_kwargs['base_url'] = base_url
    if timeout:
        client_kwargs['timeout'] = timeout
    return OpenAI(**client_kwargs)


class OpenAIChatProvider(LLMProvider):
    """
    OpenAI LLM Service.

    Sends a single user prompt (plus optional system prompt) and returns
    the raw text of the first choice.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None
    ):
        self.client = client or build_openai_client(api_key, base_url, timeout)
        self._model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    @openai_retry()
    def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.max_tokens:
            request["max_tokens"] = self.max_tokens

        response = self.client.chat.completions.create(**request)

        try:
            content = response.choices[0].message.content
        except (IndexError, AttributeError) as e:
            logger.error(f"Unexpected completion response shape: {e}")
            return ""

        if response.choices[0].finish_reason == "length":
            logger.warning(f"Completion from {self._model} hit max_tokens; output is likely truncated")

        return content or ""
