from collections import Counter
from typing import List

from planparser.models.project import Project
from planparser.models.results import ValidationResult
from planparser.services.transform.dates import parse_date


class ConsistencyValidator:
    """Cross-entity checks: unique ids, date ordering and dependency references."""

    def validate(self, project: Project) -> ValidationResult:
        issues: List[str] = []
        warnings: List[str] = []

        phase_ids = Counter(p.id for p in project.phases if p.id)
        for phase_id, count in phase_ids.items():
            if count > 1:
                issues.append(f"Duplicate phase id: {phase_id}")

        task_ids = Counter(t.id for _, t in project.iter_tasks() if t.id)
        for task_id, count in task_ids.items():
            if count > 1:
                issues.append(f"Duplicate task id: {task_id}")

        for phase in project.phases:
            phase_start = parse_date(phase.start_date)
            phase_end = parse_date(phase.end_date)
            if phase_start and phase_end and phase_start > phase_end:
                warnings.append(f"Phase '{phase.name or phase.id}' starts after it ends")

            for task in phase.tasks:
                label = task.name or task.id
                task_start = parse_date(task.start_date)
                task_end = parse_date(task.end_date)
                if task_start and task_end and task_start > task_end:
                    warnings.append(f"Task '{label}' starts after it ends")
                if (phase_start and task_start and task_start < phase_start) or \
                        (phase_end and task_end and task_end > phase_end):
                    warnings.append(f"Task '{label}' falls outside phase '{phase.name or phase.id}' dates")

                for dependency in task.dependencies:
                    if dependency not in task_ids:
                        issues.append(f"Task '{label}' depends on unknown task '{dependency}'")

        score = max(0.0, 1.0 - 0.2 * len(issues) - 0.05 * len(warnings))
        return ValidationResult(
            is_valid=not issues,
            issues=issues,
            quality_score=score,
            warnings=warnings,
        )
