from typing import Optional

from zhipuai import ZhipuAI
from tenacity import retry, stop_after_attempt, stop_before_delay, wait_exponential, retry_if_exception_type

from planparser.core.errors import ConfigurationError, ProviderError
from planparser.core.llm_config import ProviderConfig, RetrySettings
from planparser.core.logging import get_logger
from planparser.models.results import GenerationOptions, GenerationResult, TokenUsage
from planparser.services.llm.base import SYSTEM_PROMPT, BaseProvider

logger = get_logger("zhipu_provider")


class ZhipuProvider(BaseProvider):
    """Hosted GLM models through the zhipuai SDK."""

    kind = "zhipu"
    default_timeout = 60.0

    def __init__(self, config: ProviderConfig, retry_settings: Optional[RetrySettings] = None):
        if not config.api_key:
            raise ConfigurationError("zhipu provider requires an api_key")
        super().__init__(config, retry_settings)
        kwargs = {"api_key": config.api_key, "timeout": self.timeout}
        if config.base_url:
            kwargs["base_url"] = config.base_url
        self.client = ZhipuAI(**kwargs)
        self._completion = retry(
            stop=stop_after_attempt(self.retry_settings.max_retries + 1) | stop_before_delay(self.timeout),
            wait=wait_exponential(multiplier=self.retry_settings.backoff_factor, min=2, max=10),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )(self._chat_completion)

    def _chat_completion(self, prompt: str, model: str, temperature: float, max_tokens: int):
        return self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def generate(self, options: GenerationOptions, prompt: str) -> GenerationResult:
        model, temperature, max_tokens = self.resolve_options(options)
        try:
            response = self._completion(prompt, model, temperature, max_tokens)
        except Exception as e:
            logger.error(f"LLM Call failed: {e}")
            raise ProviderError(f"zhipu call failed: {e}", provider=self.kind) from e

        content = response.choices[0].message.content or ""
        usage = TokenUsage()
        if hasattr(response, 'usage') and response.usage:
            usage = TokenUsage(
                input=response.usage.prompt_tokens,
                output=response.usage.completion_tokens,
                total=response.usage.total_tokens,
            )
        return self.build_result(content, usage, getattr(response, "model", None) or model)
