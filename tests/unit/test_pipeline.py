import json

import pytest

from planparser.core.errors import TransformationError
from planparser.services.extraction.service import ExtractionService
from planparser.services.llm.orchestrator import ProviderOrchestrator
from planparser.services.pipeline import ParsePipeline
from planparser.services.prompts.builder import PromptBuilder


@pytest.fixture
def run_pipeline(alpha_document):
    orchestrators = []

    def _run(provider, recovery_enabled=True):
        orchestrator = ProviderOrchestrator({"fake": provider}, ["fake"], poll_interval=0.02)
        orchestrators.append(orchestrator)
        pipeline = ParsePipeline(ExtractionService(), PromptBuilder(), orchestrator, recovery_enabled=recovery_enabled)
        return pipeline.run("job-1", str(alpha_document), "alpha.txt", content_type="text/plain")

    yield _run
    for orchestrator in orchestrators:
        orchestrator.shutdown()


@pytest.fixture
def dangling_json(alpha_response):
    alpha_response["project"]["phases"][0]["tasks"][0]["dependencies"] = ["ghost"]
    return json.dumps(alpha_response)


def test_complete_output_stays_successful(run_pipeline, make_provider):
    result = run_pipeline(make_provider())
    assert result.status == "success"
    assert result.validation.is_valid


def test_dangling_dependency_downgrades_status(run_pipeline, make_provider, dangling_json):
    result = run_pipeline(make_provider(content=dangling_json))
    assert result.status == "validation_error"
    assert result.validation.is_valid is False
    assert "Task 'Dig' depends on unknown task 'ghost'" in result.validation_errors
    assert result.transformed_data.project.title == "Project Alpha"


def test_dangling_dependency_fails_without_recovery(run_pipeline, make_provider, dangling_json):
    with pytest.raises(TransformationError, match="Extracted structure failed validation"):
        run_pipeline(make_provider(content=dangling_json), recovery_enabled=False)
