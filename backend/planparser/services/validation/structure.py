"""
Required-field checks for the project structure.

Each entity type has its own table of ``(field, check)`` pairs. The validator
walks project -> phases -> tasks and counts every check uniformly, so the
quality score is simply satisfied / checked no matter how deep a field sits.
"""
from typing import Any, Callable, List, Sequence, Tuple

from planparser.models.project import Phase, Project, ProjectStructure, Task
from planparser.models.results import ValidationResult

FieldCheck = Tuple[str, Callable[[Any], bool]]


def _filled(value: str) -> bool:
    return bool(value and value.strip())


PROJECT_REQUIRED: Sequence[FieldCheck] = (
    ("title", lambda project: _filled(project.title)),
    ("phases", lambda project: len(project.phases) > 0),
)

PHASE_REQUIRED: Sequence[FieldCheck] = (
    ("id", lambda phase: _filled(phase.id)),
    ("name", lambda phase: _filled(phase.name)),
)

TASK_REQUIRED: Sequence[FieldCheck] = (
    ("id", lambda task: _filled(task.id)),
    ("name", lambda task: _filled(task.name)),
)

SUGGESTIONS = {
    "title": "Make sure the document states the project name",
    "phases": "The document should describe at least one phase or stage",
    "name": "Every phase and task needs a name",
    "id": "Every phase and task needs an identifier",
}


class StructureValidator:
    def validate(self, structure: ProjectStructure) -> ValidationResult:
        return self.validate_project(structure.project)

    def validate_project(self, project: Project) -> ValidationResult:
        issues: List[str] = []
        missing_fields = set()
        counts = {"checked": 0, "satisfied": 0}

        def run(entity: Any, checks: Sequence[FieldCheck], path: str) -> None:
            for field, check in checks:
                counts["checked"] += 1
                if check(entity):
                    counts["satisfied"] += 1
                else:
                    issues.append(f"Missing required field: {path}.{field}")
                    missing_fields.add(field)

        run(project, PROJECT_REQUIRED, "project")
        for i, phase in enumerate(project.phases):
            phase_path = f"project.phases[{i}]"
            run(phase, PHASE_REQUIRED, phase_path)
            for j, task in enumerate(phase.tasks):
                run(task, TASK_REQUIRED, f"{phase_path}.tasks[{j}]")

        checked = counts["checked"]
        quality = counts["satisfied"] / checked if checked else 0.0
        return ValidationResult(
            is_valid=not issues and len(project.phases) > 0,
            issues=issues,
            quality_score=quality,
            suggestions=[SUGGESTIONS[f] for f in sorted(missing_fields) if f in SUGGESTIONS],
        )


def missing_optional_fields(project: Project) -> List[str]:
    """Paths of optional descriptive fields that are empty."""
    missing = []
    if not _filled(project.description):
        missing.append("project.description")

    def check(entity: Any, path: str) -> None:
        fields = (
            ("description", entity.description),
            ("start_date", entity.start_date),
            ("end_date", entity.end_date),
        )
        for field, value in fields:
            if not _filled(value or ""):
                missing.append(f"{path}.{field}")

    for i, phase in enumerate(project.phases):
        check(phase, f"project.phases[{i}]")
        for j, task in enumerate(phase.tasks):
            check(task, f"project.phases[{i}].tasks[{j}]")
    return missing
