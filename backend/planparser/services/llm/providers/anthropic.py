from typing import Any, Dict, Optional, Tuple

import httpx

from planparser.core.errors import ConfigurationError
from planparser.core.llm_config import ProviderConfig, RetrySettings
from planparser.models.results import TokenUsage
from planparser.services.llm.base import SYSTEM_PROMPT, HTTPProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(HTTPProvider):
    kind = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    default_timeout = 60.0
    input_cost_per_million = 3.0
    output_cost_per_million = 15.0

    def __init__(
        self,
        config: ProviderConfig,
        retry_settings: Optional[RetrySettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not config.api_key:
            raise ConfigurationError("anthropic provider requires an api_key")
        super().__init__(config, retry_settings, transport)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_payload(self, prompt: str, model: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }

    def parse_response(self, data: Dict[str, Any], prompt: str) -> Tuple[str, TokenUsage]:
        blocks = data["content"]
        content = "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        return content, TokenUsage(input=input_tokens, output=output_tokens, total=input_tokens + output_tokens)
