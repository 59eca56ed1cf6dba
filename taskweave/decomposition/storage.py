"""JSON persistence for the task list."""

import json
import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from taskweave.decomposition.models import Task, TaskList


class TaskStore:
    """
    Read and write the ``{"tasks": [...]}`` document.

    Writes go to a temporary file in the same directory and are then moved
    into place, so a checkpoint is either the old list or the new one.

    Example:
        >>> store = TaskStore("tasks/tasks.json")
        >>> store.write([Task(id=1, title="Setup")])
        >>> store.read().max_id
        1
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> TaskList | None:
        """
        Load the task list.

        Returns:
            The task list, an empty list if the file does not exist, or None
            if the file exists but cannot be parsed.
        """
        if not self.path.exists():
            return TaskList()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return TaskList.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Could not read tasks from {self.path}: {e}")
            return None

    def write(self, tasks: list[Task]) -> None:
        """Persist the full task list, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"tasks": [task.to_dict() for task in tasks]}, indent=2)

        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(payload + "\n", encoding="utf-8")
        os.replace(tmp_path, self.path)

    def checkpoint(self, tasks: list[Task]) -> None:
        """Persist an intermediate task list."""
        self.write(tasks)
        logger.debug(f"Checkpoint: {len(tasks)} tasks written to {self.path}")
