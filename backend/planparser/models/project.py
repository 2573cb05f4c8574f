from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

TaskStatus = Literal["planned", "in_progress", "completed"]


class ResponsiblePerson(BaseModel):
    name: str = ""
    role: str = ""
    contact: str = ""


class Task(BaseModel):
    id: str = ""
    name: str = ""
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    responsible_persons: List[ResponsiblePerson] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    status: TaskStatus = "planned"


class Phase(BaseModel):
    id: str = ""
    name: str = ""
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    tasks: List[Task] = Field(default_factory=list)


class Project(BaseModel):
    title: str = ""
    description: str = ""
    deadline: Optional[str] = None
    phases: List[Phase] = Field(default_factory=list)
    # Derived values from enrichment live here
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def iter_tasks(self):
        for phase in self.phases:
            for task in phase.tasks:
                yield phase, task


class ExtractionMetadata(BaseModel):
    source_document: str = ""
    extraction_date: Optional[datetime] = None
    confidence_score: float = 0.0
    processing_time: float = 0.0
    provider: str = ""
    model: str = ""


class ProjectStructure(BaseModel):
    project: Project = Field(default_factory=Project)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)
