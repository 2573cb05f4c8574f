from typing import Mapping, Optional

from planparser.core.config import Settings
from planparser.core.llm_config import ConfigManager, LLMConfig
from planparser.core.logging import get_logger
from planparser.services.errors.handler import ErrorHandler
from planparser.services.extraction.preprocess import TextPreprocessor
from planparser.services.extraction.service import ExtractionService
from planparser.services.llm.orchestrator import ProviderOrchestrator
from planparser.services.llm.rate_limit import RateLimiter
from planparser.services.llm.registry import ProviderFactory, build_providers
from planparser.services.pipeline import ParsePipeline
from planparser.services.prompts.builder import PromptBuilder
from planparser.services.validation.document import DocumentValidator
from planparser.services.validation.pipeline import ValidationPipeline
from planparser.workers.pool import WorkerPool
from planparser.workers.store import JobStore
from planparser.workers.tasks import JobProcessor

logger = get_logger("container")


class ParserServices:
    """Everything the API needs, built once at startup and torn down at shutdown."""

    def __init__(
        self,
        settings: Settings,
        llm_config: Optional[LLMConfig] = None,
        constructors: Optional[Mapping[str, ProviderFactory]] = None,
    ):
        self.settings = settings
        self.llm_config = llm_config or ConfigManager(settings.LLM_CONFIG_PATH).load()

        self.error_handler = ErrorHandler(self.llm_config.error_handling)
        providers = build_providers(self.llm_config, constructors)
        limits = self.llm_config.rate_limiting
        self.orchestrator = ProviderOrchestrator(
            providers,
            self.llm_config.provider_priority,
            rate_limiter=RateLimiter(limits.requests_per_minute, limits.tokens_per_minute),
            poll_interval=settings.LLM_POLL_INTERVAL_SEC,
            max_concurrent_calls=settings.LLM_MAX_CONCURRENT_CALLS,
        )

        preprocessor = TextPreprocessor(annotate_headers=settings.ANNOTATE_HEADERS)
        self.pipeline = ParsePipeline(
            extraction=ExtractionService(preprocessor, structured_docx=settings.DOCX_STRUCTURED_TEXT),
            prompt_builder=PromptBuilder(prompts_dir=settings.PROMPTS_DIR, max_chars=settings.PROMPT_MAX_CHARS),
            orchestrator=self.orchestrator,
            validation=ValidationPipeline(document_validator=DocumentValidator(settings.CHECK_CYRILLIC)),
            recovery_enabled=self.llm_config.error_handling.recovery_enabled,
        )

        self.store = JobStore(ttl_seconds=settings.PARSER_JOB_TTL_SEC)
        self.pool = WorkerPool(
            self.store,
            JobProcessor(self.store, self.pipeline, self.error_handler),
            workers=settings.PARSER_WORKERS,
            queue_size=settings.PARSER_QUEUE_SIZE,
            sweep_interval=settings.PARSER_SWEEP_INTERVAL_SEC,
        )

    def start(self) -> None:
        if not self.orchestrator.available:
            logger.warning("No LLM providers available; jobs will fail until one is configured")
        self.pool.start()

    def shutdown(self) -> None:
        self.pool.stop()
        self.orchestrator.shutdown()
        self.error_handler.close()
