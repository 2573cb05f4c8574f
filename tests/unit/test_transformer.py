import json

import pytest

from planparser.models.results import GenerationResult, TokenUsage
from planparser.services.transform.transformer import ResponseTransformer, clean_json_string, normalize_status


def _generation(content):
    return GenerationResult(content=content, tokens_used=TokenUsage(input=1, output=2, total=3), provider="fake", model="m")


def test_success_for_complete_output(alpha_json):
    result = ResponseTransformer().transform(_generation(alpha_json), source_document="alpha.txt")
    assert result.status == "success"
    project = result.transformed_data.project
    assert project.title == "Project Alpha"
    assert project.phases[0].tasks[0].responsible_persons[0].name == "Ivan Petrov"
    assert result.transformed_data.metadata.source_document == "alpha.txt"
    assert result.transformed_data.metadata.provider == "fake"
    assert result.tokens_used.total == 3


def test_markdown_fences_and_prose_are_stripped(alpha_json):
    content = f"Here you go:\n```json\n{alpha_json}\n```"
    assert json.loads(clean_json_string(f"```json\n{alpha_json}\n```"))["project"]["title"] == "Project Alpha"
    assert ResponseTransformer().transform(_generation(content)).status == "success"


def test_unparseable_output_fails_without_raising():
    result = ResponseTransformer().transform(_generation("I could not find a project here."))
    assert result.status == "failed"
    assert result.transformed_data is None
    assert result.validation_errors


def test_deeply_nested_output_fails_without_raising():
    depth = 100_000
    content = '{"a": ' * depth + "1" + "}" * depth
    result = ResponseTransformer().transform(_generation(content))
    assert result.status == "failed"
    assert result.validation_errors == ["Model output is nested too deeply"]


def test_json_array_is_not_an_object():
    assert ResponseTransformer().transform(_generation("[1, 2, 3]")).status == "failed"


def test_missing_optional_fields_gives_partial():
    content = json.dumps({"title": "Beta", "phases": [{"id": "p1", "name": "Only phase", "tasks": []}]})
    result = ResponseTransformer().transform(_generation(content))
    assert result.status == "partial"
    assert any("Optional fields missing" in note for note in result.processing_notes)


def test_missing_required_fields_gives_validation_error():
    content = json.dumps({"project": {"title": "", "phases": []}})
    result = ResponseTransformer().transform(_generation(content))
    assert result.status == "validation_error"
    assert result.transformed_data is not None
    assert result.validation_errors


def test_schema_echo_wrapper_is_unwrapped():
    content = json.dumps({"properties": {"project": {"properties": {
        "title": "Gamma", "phases": [{"name": "Start"}],
    }}}})
    result = ResponseTransformer().transform(_generation(content))
    assert result.transformed_data.project.title == "Gamma"


def test_missing_ids_are_generated():
    content = json.dumps({"title": "Delta", "phases": [{"name": "One", "tasks": [{"name": "A"}, {"name": "B"}]}]})
    project = ResponseTransformer().transform(_generation(content)).transformed_data.project
    assert project.phases[0].id == "phase_1"
    assert [t.id for t in project.phases[0].tasks] == ["phase_1_task_1", "phase_1_task_2"]


def test_dates_statuses_and_people_are_normalized():
    content = json.dumps({"title": "  Epsilon \n project ", "phases": [{
        "id": "p1", "name": "One", "start_date": "01.02.2025", "end_date": "someday",
        "tasks": [{
            "id": "t1", "name": "A", "status": "В работе",
            "responsible_persons": [{"name": ""}, "Anna", {"name": "Oleg", "role": "PM"}],
            "dependencies": ["t0", 5, None],
        }],
    }]})
    result = ResponseTransformer().transform(_generation(content))
    project = result.transformed_data.project
    phase = project.phases[0]
    task = phase.tasks[0]
    assert project.title == "Epsilon project"
    assert phase.start_date == "2025-02-01"
    assert phase.end_date == "someday"
    assert any("Unrecognized date format" in note for note in result.processing_notes)
    assert task.status == "in_progress"
    assert [p.name for p in task.responsible_persons] == ["Anna", "Oleg"]
    assert task.dependencies == ["t0"]


@pytest.mark.parametrize("raw,expected", [
    ("Done", "completed"),
    ("in progress", "in_progress"),
    ("завершено", "completed"),
    ("unknown", "planned"),
    (None, "planned"),
])
def test_status_synonyms(raw, expected):
    assert normalize_status(raw) == expected


def test_confidence_drops_for_thin_output():
    thin = ResponseTransformer().transform(_generation(json.dumps({"title": "x", "phases": []})))
    assert thin.confidence_score < 0.5
