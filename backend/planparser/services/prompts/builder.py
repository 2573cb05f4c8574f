import json
import os
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from planparser.core.logging import get_logger
from planparser.models.results import ExtractionResult

logger = get_logger("prompt_builder")

TEMPLATE_NAME = "project_extraction.j2"
EMPLOYEE_POOL_FILE = "employee_pool.json"

# Example shape shown to the model; mirrors the ProjectStructure project block
PROJECT_SCHEMA: Dict[str, Any] = {
    "project": {
        "title": "string",
        "description": "string",
        "deadline": "YYYY-MM-DD",
        "phases": [
            {
                "id": "phase_1",
                "name": "string",
                "description": "string",
                "start_date": "YYYY-MM-DD",
                "end_date": "YYYY-MM-DD",
                "tasks": [
                    {
                        "id": "phase_1_task_1",
                        "name": "string",
                        "description": "string",
                        "start_date": "YYYY-MM-DD",
                        "end_date": "YYYY-MM-DD",
                        "responsible_persons": [
                            {"name": "string", "role": "string", "contact": "string"}
                        ],
                        "dependencies": ["phase_1_task_0"],
                        "status": "planned",
                    }
                ],
            }
        ],
    }
}


class PromptBuilder:
    def __init__(self, prompts_dir: Optional[str] = None, template_dir: Optional[str] = None, max_chars: int = 60000):
        template_dir = template_dir or os.path.join(os.path.dirname(__file__), 'templates')
        self.env = Environment(loader=FileSystemLoader(template_dir), keep_trailing_newline=True)
        self.prompts_dir = prompts_dir
        self.max_chars = max_chars

    def load_employee_pool(self) -> List[Dict[str, Any]]:
        if not self.prompts_dir:
            return []
        path = os.path.join(self.prompts_dir, EMPLOYEE_POOL_FILE)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as fh:
                pool = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable employee pool {path}: {e}")
            return []
        if not isinstance(pool, list):
            logger.warning(f"Employee pool {path} is not a list, ignoring")
            return []
        return [entry for entry in pool if isinstance(entry, dict) and entry.get("name")]

    def build(self, extraction: ExtractionResult) -> str:
        text = extraction.text
        if len(text) > self.max_chars:
            logger.warning(f"Document text truncated from {len(text)} to {self.max_chars} chars")
            text = text[:self.max_chars]

        template = self.env.get_template(TEMPLATE_NAME)
        return template.render(
            schema=json.dumps(PROJECT_SCHEMA, indent=2, ensure_ascii=False),
            employees=self.load_employee_pool(),
            has_tables=extraction.has_tables,
            document_type=extraction.document_type or "text",
            document_text=text,
        )
