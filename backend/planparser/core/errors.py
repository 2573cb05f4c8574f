"""
Exception taxonomy for the parsing service.

Every error carries a ``category`` (used by the error handler for severity and
suggested actions) and a short ``message`` that is safe to show to API users.
Internal diagnostics belong in the log, not in the message.
"""
from typing import Any, Optional


class PlanParserError(Exception):
    category = "general"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


# Input documents

class DocumentValidationError(PlanParserError):
    category = "validation"


class UnsupportedDocumentError(DocumentValidationError):
    pass


class ExtractionError(PlanParserError):
    category = "parsing"


# LLM providers

class ProviderError(PlanParserError):
    category = "llm"

    def __init__(self, message: str, provider: Optional[str] = None, **context: Any):
        super().__init__(message, provider=provider, **context)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    category = "network"


class AllProvidersFailedError(ProviderError):
    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        provider = getattr(last_error, "provider", None)
        super().__init__(message, provider=provider)
        self.last_error = last_error


class NoProvidersAvailableError(PlanParserError):
    """Raised when nothing is configured or enabled. Not a provider failure."""
    category = "configuration"


# Model output

class TransformationError(PlanParserError):
    category = "transformation"


class ConfigurationError(PlanParserError):
    category = "configuration"


# Job lifecycle

class JobError(PlanParserError):
    category = "business_logic"


class JobNotFoundError(JobError):
    pass


class JobNotReadyError(JobError):
    pass


class JobFailedError(JobError):
    pass


class JobCancelledError(JobError):
    pass


class QueueFullError(JobError):
    pass
