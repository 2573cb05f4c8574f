from typing import Optional

from planparser.models.project import ProjectStructure
from planparser.models.results import ValidationResult
from planparser.services.validation.consistency import ConsistencyValidator
from planparser.services.validation.document import DocumentValidator
from planparser.services.validation.structure import StructureValidator


def confidence_adjustment(issues: int, warnings: int) -> float:
    return max(-0.5, min(0.0, -0.2 * issues - 0.05 * warnings))


class ValidationPipeline:
    def __init__(
        self,
        document_validator: Optional[DocumentValidator] = None,
        structure_validator: Optional[StructureValidator] = None,
        consistency_validator: Optional[ConsistencyValidator] = None,
    ):
        self.document_validator = document_validator or DocumentValidator()
        self.structure_validator = structure_validator or StructureValidator()
        self.consistency_validator = consistency_validator or ConsistencyValidator()

    def validate(self, structure: ProjectStructure, source_text: Optional[str] = None) -> ValidationResult:
        stage_results = []
        stages = {}

        if source_text is not None:
            document = self.document_validator.validate(source_text)
            stage_results.append(document)
            stages["document"] = document.model_dump()

        structural = self.structure_validator.validate(structure)
        consistency = self.consistency_validator.validate(structure.project)
        stage_results.extend([structural, consistency])
        stages["structure"] = structural.model_dump()
        stages["consistency"] = consistency.model_dump()

        issues = [issue for result in stage_results for issue in result.issues]
        warnings = [warning for result in stage_results for warning in result.warnings]
        suggestions = [s for result in stage_results for s in result.suggestions]

        # Consistency penalties already show up through issues and warnings
        scored = [structural.quality_score]
        if "document" in stages:
            scored.append(stages["document"]["quality_score"])

        adjustment = confidence_adjustment(len(issues), len(warnings))
        stages["confidence_adjustment"] = adjustment

        return ValidationResult(
            is_valid=structural.is_valid and consistency.is_valid,
            issues=issues,
            quality_score=sum(scored) / len(scored),
            warnings=warnings,
            suggestions=suggestions,
            stages=stages,
        )
