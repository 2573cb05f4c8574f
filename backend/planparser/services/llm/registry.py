from typing import Callable, Dict, Mapping, Optional

from planparser.core.errors import PlanParserError
from planparser.core.llm_config import LLMConfig, ProviderConfig, RetrySettings
from planparser.core.logging import get_logger
from planparser.services.llm.base import BaseProvider
from planparser.services.llm.providers.anthropic import AnthropicProvider
from planparser.services.llm.providers.deepseek import DeepSeekProvider
from planparser.services.llm.providers.ollama import OllamaProvider
from planparser.services.llm.providers.openai import OpenAIProvider
from planparser.services.llm.providers.zhipu import ZhipuProvider

logger = get_logger("provider_registry")

ProviderFactory = Callable[[ProviderConfig, RetrySettings], BaseProvider]


def default_constructors() -> Dict[str, ProviderFactory]:
    """Constructor table for the built-in providers; a fresh dict per call."""
    return {
        "ollama": OllamaProvider,
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "deepseek": DeepSeekProvider,
        "zhipu": ZhipuProvider,
    }


def build_providers(
    config: LLMConfig,
    constructors: Optional[Mapping[str, ProviderFactory]] = None,
) -> Dict[str, BaseProvider]:
    """
    Instantiate every enabled provider once. Providers whose construction fails
    are logged and left out, so the orchestrator simply skips them.
    """
    table = constructors if constructors is not None else default_constructors()
    providers: Dict[str, BaseProvider] = {}

    for name, provider_config in config.providers.items():
        if not provider_config.enabled:
            continue
        factory = table.get(name)
        if factory is None:
            logger.warning(f"No constructor registered for provider '{name}', skipping")
            continue
        try:
            providers[name] = factory(provider_config, config.retry_settings)
        except PlanParserError as e:
            logger.error(f"Provider '{name}' could not be created: {e.message}")
            continue
        logger.info(f"Provider '{name}' ready (model={provider_config.model})")

    return providers
