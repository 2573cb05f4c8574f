import threading
import time
from typing import Callable, Optional

from planparser.core.errors import JobCancelledError, TransformationError
from planparser.core.logging import get_logger
from planparser.models.results import GenerationOptions, TransformationResult
from planparser.services.extraction.service import ExtractionService
from planparser.services.llm.orchestrator import ProviderOrchestrator
from planparser.services.prompts.builder import PromptBuilder
from planparser.services.transform.enricher import DataEnricher
from planparser.services.transform.transformer import ResponseTransformer
from planparser.services.validation.pipeline import ValidationPipeline

logger = get_logger("pipeline")

ProgressCallback = Callable[[int], None]


class ParsePipeline:
    """
    extract -> build prompt -> generate -> transform -> validate -> enrich.

    Runs synchronously on a worker thread. Cancellation is checked between
    stages and inside provider waits.
    """

    def __init__(
        self,
        extraction: ExtractionService,
        prompt_builder: PromptBuilder,
        orchestrator: ProviderOrchestrator,
        transformer: Optional[ResponseTransformer] = None,
        validation: Optional[ValidationPipeline] = None,
        enricher: Optional[DataEnricher] = None,
        recovery_enabled: bool = True,
        generation_options: Optional[GenerationOptions] = None,
    ):
        self.extraction = extraction
        self.prompt_builder = prompt_builder
        self.orchestrator = orchestrator
        self.transformer = transformer or ResponseTransformer()
        self.validation = validation or ValidationPipeline()
        self.enricher = enricher or DataEnricher()
        self.recovery_enabled = recovery_enabled
        self.generation_options = generation_options or GenerationOptions()

    def run(
        self,
        job_id: str,
        file_path: str,
        filename: str,
        content_type: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TransformationResult:
        started = time.monotonic()

        def step(value: int, message: str) -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelledError("Job cancelled")
            logger.info(f"Job {job_id}: {message}")
            if progress is not None:
                progress(value)

        step(10, "extracting text")
        extraction = self.extraction.extract(file_path, filename, content_type)

        step(25, f"building prompt from {len(extraction.text)} chars")
        prompt = self.prompt_builder.build(extraction)

        step(40, "requesting generation")
        generation = self.orchestrator.generate(self.generation_options, prompt, cancel_event)

        step(70, f"transforming output from {generation.provider}")
        result = self.transformer.transform(
            generation,
            source_document=filename,
            processing_time=time.monotonic() - started,
        )
        if result.status == "failed" or result.transformed_data is None:
            logger.warning(f"Job {job_id}: unparseable model output: {result.validation_errors}")
            raise TransformationError("Model output could not be parsed")

        step(85, "validating structure")
        validation = self.validation.validate(result.transformed_data, source_text=extraction.text)
        result.validation = validation
        result.validation_errors = list(validation.issues)
        result.processing_notes.extend(f"Warning: {warning}" for warning in validation.warnings)
        result.confidence_score = max(0.0, min(1.0, result.confidence_score + validation.stages["confidence_adjustment"]))
        if not validation.is_valid:
            # Duplicate ids and dangling dependencies count as much as missing fields
            result.status = "validation_error"
        if result.status == "validation_error" and not self.recovery_enabled:
            raise TransformationError("Extracted structure failed validation")

        step(95, "enriching")
        enriched = self.enricher.enrich(result.transformed_data)
        enriched.metadata.confidence_score = result.confidence_score
        enriched.metadata.processing_time = time.monotonic() - started
        result.transformed_data = enriched

        logger.info(
            f"Job {job_id}: finished with status={result.status}, "
            f"confidence={result.confidence_score:.2f} in {enriched.metadata.processing_time:.1f}s"
        )
        return result
