"""
Derived metrics for a transformed project.

The enricher never touches its input: it works on a deep copy and writes every
derived value into ``project.metadata``. The only field it fills outside the
metadata map is an empty ``deadline``, backfilled from the computed project end.
No clock is read, so two runs over the same input yield the same metadata.
"""
from datetime import date
from typing import List, Optional, Tuple

from planparser.core.logging import get_logger
from planparser.models.project import Project, ProjectStructure
from planparser.services.transform.dates import parse_date

logger = get_logger("enricher")

DATE_INCONSISTENCY_PENALTY = 0.1


class DataEnricher:
    def enrich(self, structure: ProjectStructure) -> ProjectStructure:
        enriched = structure.model_copy(deep=True)
        project = enriched.project

        start, end = self._timeline(project)
        calculated = {
            "project_start": start.isoformat() if start else None,
            "project_end": end.isoformat() if end else None,
            "total_duration_days": (end - start).days if start and end else 0,
        }

        if not (project.deadline or "").strip() and end:
            project.deadline = end.isoformat()
            calculated["deadline_backfilled"] = True

        quality = self._data_quality(project)
        inconsistencies = self._date_inconsistencies(project)
        health = max(0.0, quality - DATE_INCONSISTENCY_PENALTY * inconsistencies)

        total_tasks = sum(len(phase.tasks) for phase in project.phases)
        total_responsibles = sum(len(task.responsible_persons) for _, task in project.iter_tasks())
        total_dependencies = sum(len(task.dependencies) for _, task in project.iter_tasks())
        roles = sorted({
            person.role for _, task in project.iter_tasks()
            for person in task.responsible_persons if person.role
        })

        project.metadata.update({
            "calculated_fields": calculated,
            "data_quality_score": quality,
            "complexity_metrics": {
                "total_phases": len(project.phases),
                "total_tasks": total_tasks,
                "total_responsibles": total_responsibles,
            },
            "project_health": {
                "data_completeness": quality,
                "date_consistency_issues": inconsistencies,
                "total_dependencies": total_dependencies,
                "overall_health_score": health,
            },
            "health_score": health,
            "key_facts": {
                "has_timeline": start is not None and end is not None,
                "unique_roles": roles,
            },
        })

        logger.debug(
            f"Enriched '{project.title}': duration={calculated['total_duration_days']}d, "
            f"quality={quality:.2f}, health={health:.2f}"
        )
        return enriched

    @staticmethod
    def _timeline(project: Project) -> Tuple[Optional[date], Optional[date]]:
        dates: List[date] = []
        for phase in project.phases:
            candidates = [phase.start_date, phase.end_date]
            for task in phase.tasks:
                candidates.extend([task.start_date, task.end_date])
            # Unparseable values are dropped
            dates.extend(d for d in (parse_date(c) for c in candidates) if d)
        if not dates:
            return None, None
        return min(dates), max(dates)

    @staticmethod
    def _data_quality(project: Project) -> float:
        values = [project.title, project.description]
        for phase in project.phases:
            values.extend([phase.name, phase.description])
            for task in phase.tasks:
                values.extend([task.name, task.description])
        filled = sum(1 for value in values if value and value.strip())
        return filled / len(values)

    @staticmethod
    def _date_inconsistencies(project: Project) -> int:
        count = 0
        entities = list(project.phases) + [task for _, task in project.iter_tasks()]
        for entity in entities:
            start = parse_date(entity.start_date)
            end = parse_date(entity.end_date)
            if start and end and start > end:
                count += 1
        return count
