"""Pydantic models for PRD decomposition.

This module defines the data structures of the decomposition pipeline:
document sections, task groups, the persisted task list, and the response
schema generation providers must satisfy.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taskweave.ai.telemetry import UsageSummary


# =============================================================================
# ENUMS
# =============================================================================


class Priority(str, Enum):
    """Task priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ParseMode(str, Enum):
    """How a PRD was split into generation requests."""

    SECTIONS = "sections"
    BATCHES = "batches"
    SINGLE = "single"


# =============================================================================
# PROVIDER RESPONSE SCHEMA
# =============================================================================


class GeneratedTask(BaseModel):
    """One task as returned by a provider, before reconciliation."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    details: str = ""
    test_strategy: str = Field(default="", alias="testStrategy")
    priority: Priority = Priority.MEDIUM
    dependencies: list[int] = Field(default_factory=list)
    status: str = "pending"


class PrdMetadata(BaseModel):
    """Metadata block a provider returns alongside its tasks."""

    model_config = ConfigDict(populate_by_name=True)

    project_name: str = Field(..., alias="projectName")
    total_tasks: int = Field(..., alias="totalTasks")
    source_file: str = Field(..., alias="sourceFile")
    generated_at: str = Field(..., alias="generatedAt")


class PrdResponse(BaseModel):
    """Structured output expected from every task generation call.

    Example:
        >>> PrdResponse.model_validate({
        ...     "tasks": [{"id": 1, "title": "Setup", "description": "Init repo"}],
        ...     "metadata": {"projectName": "x", "totalTasks": 1,
        ...                  "sourceFile": "prd.md", "generatedAt": "2025-01-01"},
        ... }).tasks[0].priority
        <Priority.MEDIUM: 'medium'>
    """

    tasks: list[GeneratedTask]
    metadata: PrdMetadata


# =============================================================================
# TASK LIST
# =============================================================================


class Task(BaseModel):
    """A committed task in the persisted task list.

    Unknown fields written by other tools are preserved on round-trip.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int = Field(..., gt=0)
    title: str
    description: str = ""
    details: str = ""
    test_strategy: str = Field(default="", alias="testStrategy")
    priority: Priority = Priority.MEDIUM
    status: str = "pending"
    dependencies: list[int] = Field(default_factory=list)
    subtasks: list[Any] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the on-disk field names."""
        return self.model_dump(mode="json", by_alias=True)


class TaskList(BaseModel):
    """The persisted ``{"tasks": [...]}`` document."""

    tasks: list[Task] = Field(default_factory=list)

    @property
    def max_id(self) -> int:
        return max((task.id for task in self.tasks), default=0)


# =============================================================================
# SEGMENTATION
# =============================================================================


class Section(BaseModel):
    """A titled slice of a PRD. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    title: str
    level: int = Field(default=0, ge=0, le=3)
    content: str = ""
    line_count: int = Field(default=0, ge=0)
    is_overview: bool = False
    is_marked: bool = False


class TaskGroup(BaseModel):
    """Sections processed together in one generation call."""

    name: str
    sections: list[Section] = Field(default_factory=list)
    line_count: int = 0
    is_large: bool = False
    suggested_tasks: int = 0
    overview: str = ""

    @property
    def content(self) -> str:
        """Joined content of all member sections."""
        return "\n\n".join(section.content for section in self.sections)


# =============================================================================
# RESULTS
# =============================================================================


class ParseResult(BaseModel):
    """Outcome of a PRD parse run."""

    success: bool
    tasks_path: str
    mode: ParseMode
    tasks: list[Task] = Field(default_factory=list)
    new_task_count: int = 0
    telemetry: UsageSummary = Field(default_factory=UsageSummary)
