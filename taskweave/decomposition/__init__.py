"""PRD decomposition - segmenting documents and generating task lists.

This module provides the decomposition pipeline:
- Segmentation (PRD text -> titled sections)
- Planning (sections -> task groups with task counts)
- Generation (task groups -> reconciled, checkpointed tasks)
"""

from taskweave.decomposition.driver import TaskGenerationDriver, batch_size_for
from taskweave.decomposition.models import (
    GeneratedTask,
    ParseMode,
    ParseResult,
    PrdMetadata,
    PrdResponse,
    Priority,
    Section,
    Task,
    TaskGroup,
    TaskList,
)
from taskweave.decomposition.planner import BatchPlanner
from taskweave.decomposition.reconcile import reconcile_tasks
from taskweave.decomposition.segmenter import (
    DefaultHeaderPredicate,
    DocumentSegmenter,
    HeaderPredicate,
)
from taskweave.decomposition.storage import TaskStore

__all__ = [
    "BatchPlanner",
    "DefaultHeaderPredicate",
    "DocumentSegmenter",
    "GeneratedTask",
    "HeaderPredicate",
    "ParseMode",
    "ParseResult",
    "PrdMetadata",
    "PrdResponse",
    "Priority",
    "Section",
    "Task",
    "TaskGenerationDriver",
    "TaskGroup",
    "TaskList",
    "TaskStore",
    "batch_size_for",
    "reconcile_tasks",
]
