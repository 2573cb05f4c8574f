from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from planparser.models.project import ProjectStructure

TransformationStatus = Literal["success", "partial", "failed", "validation_error"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    total: int = 0


class GenerationOptions(BaseModel):
    # None means "use the provider's configured value"
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: Optional[str] = None


class GenerationResult(BaseModel):
    content: str
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)
    confidence: float = 0.0
    model: str = ""
    provider: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class ValidationResult(BaseModel):
    is_valid: bool = True
    issues: List[str] = Field(default_factory=list)
    quality_score: float = 1.0
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    stages: Dict[str, Any] = Field(default_factory=dict)


class TransformationResult(BaseModel):
    transformed_data: Optional[ProjectStructure] = None
    status: TransformationStatus = "failed"
    confidence_score: float = 0.0
    validation_errors: List[str] = Field(default_factory=list)
    processing_notes: List[str] = Field(default_factory=list)
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)
    validation: Optional[ValidationResult] = None


class FormattedElement(BaseModel):
    text: str
    type: Literal["heading", "paragraph", "list_item", "table_row"] = "paragraph"
    heading_level: Optional[int] = None


class ListBlock(BaseModel):
    items: List[str] = Field(default_factory=list)
    ordered: bool = False


class ExtractionResult(BaseModel):
    text: str = ""
    formatted_elements: List[FormattedElement] = Field(default_factory=list)
    tables: List[List[List[str]]] = Field(default_factory=list)
    lists: List[ListBlock] = Field(default_factory=list)
    has_tables: bool = False
    page_or_section_count: int = 0
    document_type: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
