"""LLM Module - LLM services and interfaces."""
from core.llm.interfaces import LLMProvider
from core.llm.openai_service import OpenAIChatProvider
from core.llm.anthropic_service import AnthropicChatProvider
from core.llm.prompt_registry import PromptRegistry
from core.llm.factory import build_llm_provider

__all__ = ['LLMProvider', 'OpenAIChatProvider', 'AnthropicChatProvider', 'PromptRegistry', 'build_llm_provider']
