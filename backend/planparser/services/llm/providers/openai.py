from typing import Any, Dict, Optional, Tuple

import httpx

from planparser.core.errors import ConfigurationError
from planparser.core.llm_config import ProviderConfig, RetrySettings
from planparser.models.results import TokenUsage
from planparser.services.llm.base import SYSTEM_PROMPT, HTTPProvider


class OpenAIProvider(HTTPProvider):
    kind = "openai"
    default_base_url = "https://api.openai.com/v1"
    default_timeout = 300.0
    input_cost_per_million = 10.0
    output_cost_per_million = 30.0

    def __init__(
        self,
        config: ProviderConfig,
        retry_settings: Optional[RetrySettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not config.api_key:
            raise ConfigurationError(f"{self.kind} provider requires an api_key")
        super().__init__(config, retry_settings, transport)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }

    def build_payload(self, prompt: str, model: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }

    def parse_response(self, data: Dict[str, Any], prompt: str) -> Tuple[str, TokenUsage]:
        content = data["choices"][0]["message"]["content"] or ""
        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", 0)
        output_tokens = usage.get("completion_tokens", 0)
        return content, TokenUsage(
            input=input_tokens,
            output=output_tokens,
            total=usage.get("total_tokens", input_tokens + output_tokens),
        )
