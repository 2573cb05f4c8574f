import pytest

from planparser.models.project import Phase, Project, ProjectStructure, Task
from planparser.services.validation.consistency import ConsistencyValidator
from planparser.services.validation.document import DocumentValidator
from planparser.services.validation.pipeline import ValidationPipeline, confidence_adjustment


def _project():
    return Project(
        title="Alpha",
        phases=[
            Phase(id="p1", name="One", start_date="2025-01-01", end_date="2025-01-31", tasks=[
                Task(id="t1", name="A", start_date="2025-01-02", end_date="2025-01-05"),
                Task(id="t2", name="B", start_date="2025-01-20", end_date="2025-02-10", dependencies=["t1", "t9"]),
            ]),
            Phase(id="p1", name="Dup", tasks=[Task(id="t1", name="Again")]),
        ],
    )


def test_consistency_findings():
    result = ConsistencyValidator().validate(_project())
    assert "Duplicate phase id: p1" in result.issues
    assert "Duplicate task id: t1" in result.issues
    assert "Task 'B' depends on unknown task 't9'" in result.issues
    assert result.warnings == ["Task 'B' falls outside phase 'One' dates"]
    assert result.is_valid is False


def test_inverted_dates_are_warnings():
    project = Project(title="x", phases=[Phase(id="p", name="P", start_date="2025-03-01", end_date="2025-02-01")])
    result = ConsistencyValidator().validate(project)
    assert result.is_valid
    assert result.warnings == ["Phase 'P' starts after it ends"]


def test_document_checks_are_advisory():
    short = DocumentValidator().validate("tiny plan")
    assert short.is_valid
    assert short.quality_score == 0.5
    assert short.warnings

    assert DocumentValidator().validate("").is_valid is False

    latin = DocumentValidator(check_cyrillic=True).validate("Project plan " * 20)
    assert latin.suggestions
    cyrillic = DocumentValidator(check_cyrillic=True).validate("План проекта " * 20)
    assert cyrillic.suggestions == []
    assert cyrillic.warnings == []


def test_pipeline_combines_stages():
    structure = ProjectStructure(project=Project(
        title="Alpha",
        phases=[Phase(id="p1", name="One", tasks=[Task(id="t1", name="A")])],
    ))
    result = ValidationPipeline().validate(structure, source_text="short")
    assert result.is_valid
    assert result.quality_score == pytest.approx((1.0 + 0.5) / 2)
    assert set(result.stages) == {"document", "structure", "consistency", "confidence_adjustment"}
    assert result.stages["confidence_adjustment"] == pytest.approx(-0.05)


def test_confidence_adjustment_is_capped():
    assert confidence_adjustment(0, 0) == 0.0
    assert confidence_adjustment(1, 2) == pytest.approx(-0.3)
    assert confidence_adjustment(10, 10) == -0.5
