import os
import re
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from planparser.core.errors import ConfigurationError
from planparser.core.logging import get_logger

logger = get_logger("llm_config")

# Providers that run locally and need no credentials
LOCAL_PROVIDERS = {"ollama"}

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ProviderConfig(BaseModel):
    enabled: bool = False
    api_key: str = ""
    model: str = ""
    temperature: float = 0.1
    max_tokens: int = 4096
    base_url: str = ""
    timeout_seconds: Optional[float] = None


class RetrySettings(BaseModel):
    max_retries: int = 3
    backoff_factor: float = 1.0
    status_codes: List[int] = Field(default_factory=lambda: [429, 502, 503, 504])


class RateLimitSettings(BaseModel):
    requests_per_minute: int = 60
    tokens_per_minute: int = 100000


class ErrorHandlingSettings(BaseModel):
    log_file: str = "logs/errors.log"
    max_errors: int = 1000
    log_level: str = "INFO"
    error_tolerance: float = 0.1
    recovery_enabled: bool = True


class LLMConfig(BaseModel):
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    provider_priority: List[str] = Field(default_factory=list)
    retry_settings: RetrySettings = Field(default_factory=RetrySettings)
    rate_limiting: RateLimitSettings = Field(default_factory=RateLimitSettings)
    error_handling: ErrorHandlingSettings = Field(default_factory=ErrorHandlingSettings)

    def enabled_providers(self) -> List[str]:
        """Names from the priority list that point at an enabled provider, in order."""
        return [
            name for name in self.provider_priority
            if name in self.providers and self.providers[name].enabled
        ]


def default_config() -> Dict[str, Any]:
    """Raw default configuration, placeholders left unexpanded so it can be persisted."""
    return {
        "providers": {
            "ollama": {
                "enabled": True,
                "model": "llama3",
                "base_url": "http://localhost:11434",
                "temperature": 0.1,
                "max_tokens": 4096,
            },
            "openai": {
                "enabled": False,
                "api_key": "${OPENAI_API_KEY}",
                "model": "gpt-4-turbo",
                "temperature": 0.1,
                "max_tokens": 4096,
            },
            "anthropic": {
                "enabled": False,
                "api_key": "${ANTHROPIC_API_KEY}",
                "model": "claude-3-sonnet-20240229",
                "temperature": 0.1,
                "max_tokens": 4096,
            },
            "deepseek": {
                "enabled": False,
                "api_key": "${DEEPSEEK_API_KEY}",
                "model": "deepseek-chat",
                "temperature": 0.1,
                "max_tokens": 4096,
            },
        },
        "provider_priority": ["ollama", "openai", "anthropic", "deepseek"],
        "retry_settings": {
            "max_retries": 3,
            "backoff_factor": 1.0,
            "status_codes": [429, 502, 503, 504],
        },
        "rate_limiting": {
            "requests_per_minute": 60,
            "tokens_per_minute": 100000,
        },
        "error_handling": {
            "log_file": "logs/errors.log",
            "max_errors": 1000,
            "log_level": "INFO",
            "error_tolerance": 0.1,
            "recovery_enabled": True,
        },
    }


def substitute_env_vars(value: Any, environ: Optional[Dict[str, str]] = None) -> Any:
    """
    Expand ``${VAR}`` and ``${VAR:default}`` in every string of a parsed document.
    Unset variables without a default expand to an empty string.
    """
    env = os.environ if environ is None else environ

    def _replace(match: "re.Match") -> str:
        name, sep, default = match.group(1).partition(":")
        found = env.get(name.strip())
        if found is None:
            return default if sep else ""
        return found

    if isinstance(value, str):
        return _ENV_PATTERN.sub(_replace, value)
    if isinstance(value, dict):
        return {key: substitute_env_vars(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item, env) for item in value]
    return value


def validate_config(config: LLMConfig) -> None:
    errors = []
    for name, provider in config.providers.items():
        if not provider.enabled:
            continue
        if name not in LOCAL_PROVIDERS and not provider.api_key.strip():
            errors.append(f"provider '{name}' is enabled but has no api_key")
        if not provider.model.strip():
            errors.append(f"provider '{name}' is enabled but has no model")
    for name in config.provider_priority:
        if name not in config.providers:
            errors.append(f"provider_priority references unknown provider '{name}'")
    if config.rate_limiting.requests_per_minute <= 0:
        errors.append("rate_limiting.requests_per_minute must be positive")
    if config.rate_limiting.tokens_per_minute <= 0:
        errors.append("rate_limiting.tokens_per_minute must be positive")
    if errors:
        raise ConfigurationError("Invalid LLM configuration: " + "; ".join(errors))


class ConfigManager:
    def __init__(self, config_path: str):
        self.config_path = config_path

    def load(self) -> LLMConfig:
        if not os.path.exists(self.config_path):
            logger.warning(f"Config file {self.config_path} not found, writing defaults")
            self.save_raw(default_config())

        try:
            with open(self.config_path, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse {self.config_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigurationError(f"{self.config_path} must contain a mapping at the top level")

        try:
            config = LLMConfig.model_validate(substitute_env_vars(raw))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid LLM configuration: {e.error_count()} field error(s)") from e

        validate_config(config)
        logger.info(f"Loaded LLM config from {self.config_path}, enabled providers: {config.enabled_providers()}")
        return config

    def save_raw(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as fh:
            yaml.safe_dump(data, fh, sort_keys=False, allow_unicode=True)
