from abc import ABC, abstractmethod
import time
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, stop_before_delay, wait_exponential

from planparser.core.errors import ProviderError, ProviderTimeoutError
from planparser.core.llm_config import ProviderConfig, RetrySettings
from planparser.core.logging import get_logger
from planparser.models.results import GenerationOptions, GenerationResult, TokenUsage

logger = get_logger("llm_provider")

SYSTEM_PROMPT = (
    "You are an expert in extracting structured project information from documents. "
    "Return only valid JSON without additional text."
)

# Shorter than this (after trimming) reads as an error stub rather than an answer
ERROR_LIKE_MAX_LENGTH = 3
ERROR_LIKE_LITERALS = {"error", "null"}

MIN_ATTEMPT_TIMEOUT = 0.1


def score_confidence(content: str, total_tokens: int = 0, blend_length: bool = True) -> float:
    """
    Coarse usability estimate for raw model output.

    Brace matching only; this is a pre-filter, not schema validation.
    """
    text = (content or "").strip()
    if not text:
        return 0.1
    if text.startswith("{") and text.endswith("}"):
        if not blend_length:
            return 1.0
        return (1.0 + min(total_tokens / 1000.0, 1.0)) / 2
    if len(text) < ERROR_LIKE_MAX_LENGTH or text.lower() in ERROR_LIKE_LITERALS:
        return 0.1
    return 0.3


class RetryableStatusError(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"retryable HTTP status {status_code}")
        self.status_code = status_code


class BaseProvider(ABC):
    """A source of text generation. Instances are shared across workers and never mutated after init."""

    kind: str = ""
    default_timeout: float = 60.0
    input_cost_per_million: float = 0.0
    output_cost_per_million: float = 0.0
    blend_confidence: bool = True

    def __init__(self, config: ProviderConfig, retry_settings: Optional[RetrySettings] = None):
        self.config = config
        self.model = config.model
        self.timeout = config.timeout_seconds or self.default_timeout
        self.retry_settings = retry_settings or RetrySettings()

    @abstractmethod
    def generate(self, options: GenerationOptions, prompt: str) -> GenerationResult:
        ...

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens * self.input_cost_per_million + output_tokens * self.output_cost_per_million) / 1_000_000

    def resolve_options(self, options: GenerationOptions) -> Tuple[str, float, int]:
        model = options.model or self.model
        temperature = self.config.temperature if options.temperature is None else options.temperature
        max_tokens = self.config.max_tokens if options.max_tokens is None else options.max_tokens
        return model, temperature, max_tokens

    def build_result(self, content: str, usage: TokenUsage, model: str) -> GenerationResult:
        return GenerationResult(
            content=content,
            tokens_used=usage,
            confidence=score_confidence(content, usage.total, self.blend_confidence),
            model=model,
            provider=self.kind,
        )

    def close(self) -> None:
        pass


class HTTPProvider(BaseProvider):
    """Provider speaking JSON over HTTP with per-request retries."""

    default_base_url: str = ""

    def __init__(
        self,
        config: ProviderConfig,
        retry_settings: Optional[RetrySettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(config, retry_settings)
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self._http = httpx.Client(timeout=httpx.Timeout(self.timeout), transport=transport)

    @property
    @abstractmethod
    def endpoint(self) -> str:
        ...

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def build_payload(self, prompt: str, model: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
        ...

    @abstractmethod
    def parse_response(self, data: Dict[str, Any], prompt: str) -> Tuple[str, TokenUsage]:
        ...

    def generate(self, options: GenerationOptions, prompt: str) -> GenerationResult:
        model, temperature, max_tokens = self.resolve_options(options)
        payload = self.build_payload(prompt, model, temperature, max_tokens)
        data = self._post(payload)

        try:
            content, usage = self.parse_response(data, prompt)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{self.kind} returned an unexpected response shape", provider=self.kind) from e

        logger.info(f"{self.kind} generation finished: model={model}, tokens={usage.total}")
        return self.build_result(content, usage, data.get("model") or model)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        settings = self.retry_settings
        # Retries and backoff share one budget of self.timeout seconds
        deadline = time.monotonic() + self.timeout
        retryer = Retrying(
            stop=stop_after_attempt(settings.max_retries + 1) | stop_before_delay(self.timeout),
            wait=wait_exponential(multiplier=settings.backoff_factor, max=10),
            retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
            reraise=True,
        )
        try:
            for attempt in retryer:
                with attempt:
                    remaining = max(deadline - time.monotonic(), MIN_ATTEMPT_TIMEOUT)
                    response = self._http.post(self.endpoint, json=payload, headers=self.headers(), timeout=remaining)
                    if response.status_code in settings.status_codes:
                        logger.warning(f"{self.kind} answered {response.status_code}, attempt {attempt.retry_state.attempt_number}")
                        raise RetryableStatusError(response.status_code)
                    response.raise_for_status()
                    return response.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{self.kind} request timed out", provider=self.kind) from e
        except RetryableStatusError as e:
            raise ProviderError(f"{self.kind} unavailable (HTTP {e.status_code})", provider=self.kind) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"{self.kind} returned HTTP {e.response.status_code}", provider=self.kind) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.kind} transport failure: {e}", provider=self.kind) from e
        except ValueError as e:
            raise ProviderError(f"{self.kind} returned a non-JSON body", provider=self.kind) from e

    def close(self) -> None:
        self._http.close()
