import json
import re
from typing import Any, Dict, List, Optional

from planparser.core.logging import get_logger
from planparser.models.project import (
    ExtractionMetadata,
    Phase,
    Project,
    ProjectStructure,
    ResponsiblePerson,
    Task,
)
from planparser.models.results import GenerationResult, TransformationResult, utcnow
from planparser.services.transform.dates import normalize_date
from planparser.services.validation.structure import StructureValidator, missing_optional_fields

logger = get_logger("transformer")

_WHITESPACE = re.compile(r"\s+")

STATUS_SYNONYMS = {
    "planned": "planned",
    "plan": "planned",
    "todo": "planned",
    "to do": "planned",
    "not started": "planned",
    "new": "planned",
    "запланировано": "planned",
    "запланирована": "planned",
    "не начато": "planned",
    "in_progress": "in_progress",
    "in progress": "in_progress",
    "in-progress": "in_progress",
    "active": "in_progress",
    "ongoing": "in_progress",
    "started": "in_progress",
    "в работе": "in_progress",
    "в процессе": "in_progress",
    "выполняется": "in_progress",
    "completed": "completed",
    "complete": "completed",
    "done": "completed",
    "finished": "completed",
    "завершено": "completed",
    "завершена": "completed",
    "выполнено": "completed",
    "готово": "completed",
}


def clean_json_string(content: str) -> str:
    """
    Strip markdown code fences and surrounding prose, leaving the outermost
    JSON object. Returns the stripped content unchanged when no braces exist.
    """
    content = content.strip()

    if content.startswith("```"):
        newline_idx = content.find("\n")
        if newline_idx != -1:
            content = content[newline_idx + 1:]
        if content.rstrip().endswith("```"):
            content = content.rstrip()[:-3]

    content = content.strip()
    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        return content[start:end + 1]
    return content


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return _WHITESPACE.sub(" ", value).strip()


def normalize_status(value: Any) -> str:
    key = normalize_text(value).lower()
    return STATUS_SYNONYMS.get(key, "planned")


class ResponseTransformer:
    """Turns raw model output into a ProjectStructure and classifies the outcome."""

    def __init__(self, structure_validator: Optional[StructureValidator] = None):
        self.structure_validator = structure_validator or StructureValidator()

    def transform(
        self,
        generation: GenerationResult,
        source_document: str = "",
        processing_time: float = 0.0,
    ) -> TransformationResult:
        notes: List[str] = []
        warnings: List[str] = []

        try:
            data = json.loads(clean_json_string(generation.content))
        except json.JSONDecodeError as e:
            logger.warning(f"Model output from {generation.provider} is not valid JSON: {e}")
            return self._failed(generation, f"Model output is not valid JSON: {e.msg}")
        except RecursionError:
            logger.warning(f"Model output from {generation.provider} is nested too deeply to parse")
            return self._failed(generation, "Model output is nested too deeply")

        if not isinstance(data, dict):
            return self._failed(generation, "Model output is not a JSON object")

        data = self._unwrap(data)
        project = self._build_project(data, notes, warnings)

        validation = self.structure_validator.validate_project(project)
        missing = missing_optional_fields(project)

        if not validation.is_valid:
            status = "validation_error"
        elif missing:
            status = "partial"
            shown = ", ".join(missing[:5])
            more = f" and {len(missing) - 5} more" if len(missing) > 5 else ""
            notes.append(f"Optional fields missing: {shown}{more}")
        else:
            status = "success"

        confidence = self._confidence(project, len(validation.issues), len(warnings))
        structure = ProjectStructure(
            project=project,
            metadata=ExtractionMetadata(
                source_document=source_document,
                extraction_date=utcnow(),
                confidence_score=confidence,
                processing_time=processing_time,
                provider=generation.provider,
                model=generation.model,
            ),
        )

        logger.info(
            f"Transformed output from {generation.provider}: status={status}, "
            f"phases={len(project.phases)}, confidence={confidence:.2f}"
        )
        return TransformationResult(
            transformed_data=structure,
            status=status,
            confidence_score=confidence,
            validation_errors=list(validation.issues),
            processing_notes=warnings + notes,
            tokens_used=generation.tokens_used,
            validation=validation,
        )

    def _failed(self, generation: GenerationResult, message: str) -> TransformationResult:
        return TransformationResult(
            status="failed",
            confidence_score=0.0,
            validation_errors=[message],
            tokens_used=generation.tokens_used,
        )

    @staticmethod
    def _unwrap(data: Dict[str, Any]) -> Dict[str, Any]:
        # Some models echo the JSON schema shape back: {"properties": {"project": {"properties": {...}}}}
        properties = data.get("properties")
        if isinstance(properties, dict) and isinstance(properties.get("project"), dict):
            inner = properties["project"]
            if isinstance(inner.get("properties"), dict):
                return inner["properties"]
            return inner
        if isinstance(data.get("project"), dict):
            return data["project"]
        return data

    def _build_project(self, data: Dict[str, Any], notes: List[str], warnings: List[str]) -> Project:
        phases = []
        raw_phases = data.get("phases") or []
        if not isinstance(raw_phases, list):
            warnings.append("Field 'phases' is not a list and was ignored")
            raw_phases = []

        for i, raw_phase in enumerate(raw_phases):
            if not isinstance(raw_phase, dict):
                warnings.append(f"Phase #{i + 1} is not an object and was skipped")
                continue
            phases.append(self._build_phase(raw_phase, i, notes, warnings))

        return Project(
            title=normalize_text(data.get("title") or data.get("name")),
            description=normalize_text(data.get("description")),
            deadline=self._date(data.get("deadline"), "project deadline", warnings),
            phases=phases,
        )

    def _build_phase(self, raw: Dict[str, Any], index: int, notes: List[str], warnings: List[str]) -> Phase:
        name = normalize_text(raw.get("name") or raw.get("title"))
        phase_id = normalize_text(raw.get("id"))
        if not phase_id:
            phase_id = f"phase_{index + 1}"
            notes.append(f"Generated id '{phase_id}' for phase '{name}'")

        tasks = []
        raw_tasks = raw.get("tasks") or []
        if not isinstance(raw_tasks, list):
            warnings.append(f"Tasks of phase '{phase_id}' are not a list and were ignored")
            raw_tasks = []
        for j, raw_task in enumerate(raw_tasks):
            if not isinstance(raw_task, dict):
                warnings.append(f"Task #{j + 1} of phase '{phase_id}' is not an object and was skipped")
                continue
            tasks.append(self._build_task(raw_task, phase_id, j, notes, warnings))

        return Phase(
            id=phase_id,
            name=name,
            description=normalize_text(raw.get("description")) or None,
            start_date=self._date(raw.get("start_date"), f"phase '{phase_id}' start", warnings),
            end_date=self._date(raw.get("end_date"), f"phase '{phase_id}' end", warnings),
            tasks=tasks,
        )

    def _build_task(self, raw: Dict[str, Any], phase_id: str, index: int,
                    notes: List[str], warnings: List[str]) -> Task:
        name = normalize_text(raw.get("name") or raw.get("title"))
        task_id = normalize_text(raw.get("id"))
        if not task_id:
            task_id = f"{phase_id}_task_{index + 1}"
            notes.append(f"Generated id '{task_id}' for task '{name}'")

        raw_dependencies = raw.get("dependencies") or []
        if not isinstance(raw_dependencies, list):
            raw_dependencies = [raw_dependencies]
        dependencies = [d.strip() for d in raw_dependencies if isinstance(d, str) and d.strip()]

        return Task(
            id=task_id,
            name=name,
            description=normalize_text(raw.get("description")) or None,
            start_date=self._date(raw.get("start_date"), f"task '{task_id}' start", warnings),
            end_date=self._date(raw.get("end_date"), f"task '{task_id}' end", warnings),
            responsible_persons=self._responsibles(raw),
            dependencies=dependencies,
            status=normalize_status(raw.get("status")),
        )

    @staticmethod
    def _responsibles(raw: Dict[str, Any]) -> List[ResponsiblePerson]:
        entries = raw.get("responsible_persons") or raw.get("responsibles") or raw.get("assignees") or []
        if not isinstance(entries, list):
            entries = [entries]

        persons = []
        for entry in entries:
            if isinstance(entry, str):
                entry = {"name": entry}
            if not isinstance(entry, dict):
                continue
            name = normalize_text(entry.get("name"))
            if not name:
                continue
            persons.append(ResponsiblePerson(
                name=name,
                role=normalize_text(entry.get("role")),
                contact=normalize_text(entry.get("contact") or entry.get("email")),
            ))
        return persons

    @staticmethod
    def _date(value: Any, label: str, warnings: List[str]) -> Optional[str]:
        text = normalize_text(value)
        if not text:
            return None
        normalized = normalize_date(text)
        if normalized:
            return normalized
        warnings.append(f"Unrecognized date format for {label}: '{text}'")
        return text

    @staticmethod
    def _confidence(project: Project, issues: int, warnings: int) -> float:
        score = 1.0 - 0.2 * issues - 0.05 * warnings
        if not project.title:
            score -= 0.1
        if not project.description:
            score -= 0.05
        if not project.phases:
            score -= 0.3
        if not any(phase.tasks for phase in project.phases):
            score -= 0.2
        return max(0.0, min(1.0, score))
