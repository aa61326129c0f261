"""Choose the chat completion provider once, from configuration."""
import logging

from core.config_loader import LlmConfig
from core.llm.interfaces import LLMProvider

logger = logging.getLogger(__name__)


def build_llm_provider(llm_config: LlmConfig) -> LLMProvider:
    if llm_config.provider == "anthropic":
        from core.llm.anthropic_service import AnthropicChatProvider
        logger.info(f"Using Anthropic chat provider (model={llm_config.model})")
        return AnthropicChatProvider(
            api_key=llm_config.api_key,
            model=llm_config.model,
            temperature=llm_config.temperature,
            max_tokens=llm_config.max_tokens,
            timeout=llm_config.timeout_seconds
        )

    from core.llm.openai_service import OpenAIChatProvider
    logger.info(f"Using OpenAI chat provider (model={llm_config.model})")
    return OpenAIChatProvider(
        api_key=llm_config.api_key,
        base_url=llm_config.base_url,
        model=llm_config.model,
        temperature=llm_config.temperature,
        max_tokens=llm_config.max_tokens,
        timeout=llm_config.timeout_seconds
    )
