"""Id and dependency reconciliation for generated tasks."""

from collections.abc import Iterable

from loguru import logger

from taskweave.decomposition.models import GeneratedTask, Task


def reconcile_tasks(
    generated: list[GeneratedTask],
    start_id: int,
    known_ids: Iterable[int] = (),
) -> list[Task]:
    """
    Turn one provider response into committed tasks.

    Tasks get sequential ids from ``start_id`` in response order. Every task
    starts as ``pending`` whatever status the provider reported. Declared
    dependencies are first mapped through the response's own ids (providers
    number tasks in their own way); an id the response does not define is
    kept only if it names an already known task. A dependency survives only
    if it is lower than the task's new id and refers to a known task or one
    generated earlier in this response. Duplicates are removed.

    Args:
        generated: Validated tasks from the provider.
        start_id: Id for the first task.
        known_ids: Ids committed before this response (earlier runs or
            earlier groups of this run).

    Returns:
        Tasks ready to persist.

    Example:
        >>> tasks = reconcile_tasks(
        ...     [GeneratedTask(id=1, title="A", description="a"),
        ...      GeneratedTask(id=2, title="B", description="b", dependencies=[1, 9])],
        ...     start_id=11,
        ... )
        >>> [(t.id, t.dependencies) for t in tasks]
        [(11, []), (12, [11])]
    """
    known = set(known_ids)

    id_map: dict[int, int] = {}
    for offset, task in enumerate(generated):
        # First occurrence wins when a provider repeats an id.
        id_map.setdefault(task.id, start_id + offset)

    reconciled: list[Task] = []
    dropped = 0

    for offset, task in enumerate(generated):
        new_id = start_id + offset
        dependencies: list[int] = []

        for dep in task.dependencies:
            mapped = id_map.get(dep)
            if mapped is None and dep in known:
                mapped = dep
            valid = mapped is not None and mapped < new_id and (mapped in known or mapped >= start_id)
            if not valid:
                dropped += 1
                continue
            if mapped not in dependencies:
                dependencies.append(mapped)

        reconciled.append(
            Task(
                id=new_id,
                title=task.title,
                description=task.description,
                details=task.details,
                test_strategy=task.test_strategy,
                priority=task.priority,
                status="pending",
                dependencies=dependencies,
                subtasks=[],
            )
        )

    if dropped:
        logger.debug(f"Dropped {dropped} invalid dependency reference(s) from tasks {start_id}+")

    return reconciled
