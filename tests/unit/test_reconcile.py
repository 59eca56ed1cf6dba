"""Unit tests for id and dependency reconciliation."""

from taskweave.decomposition.models import GeneratedTask, Priority
from taskweave.decomposition.reconcile import reconcile_tasks


def generated(task_id: int, deps: list[int] | None = None, **kwargs) -> GeneratedTask:
    return GeneratedTask(
        id=task_id,
        title=f"Task {task_id}",
        description=f"Description {task_id}",
        dependencies=deps or [],
        **kwargs,
    )


class TestIdAssignment:
    """Tests for sequential id assignment."""

    def test_sequential_ids_from_start(self) -> None:
        tasks = reconcile_tasks([generated(1), generated(2), generated(3)], start_id=7)
        assert [t.id for t in tasks] == [7, 8, 9]

    def test_provider_ids_ignored(self) -> None:
        tasks = reconcile_tasks([generated(40), generated(12)], start_id=1)
        assert [t.id for t in tasks] == [1, 2]

    def test_defaults(self) -> None:
        task = reconcile_tasks([generated(1)], start_id=1)[0]

        assert task.priority == Priority.MEDIUM
        assert task.status == "pending"
        assert task.subtasks == []

    def test_provider_status_ignored(self) -> None:
        tasks = reconcile_tasks(
            [generated(1, status="done"), generated(2, status="in-progress")], start_id=1
        )
        assert [t.status for t in tasks] == ["pending", "pending"]

    def test_priority_kept(self) -> None:
        task = reconcile_tasks([generated(1, priority="high")], start_id=1)[0]
        assert task.priority == Priority.HIGH

    def test_empty_response(self) -> None:
        assert reconcile_tasks([], start_id=5) == []


class TestDependencyRemapping:
    """Tests for dependency remapping and filtering."""

    def test_local_ids_remapped(self) -> None:
        tasks = reconcile_tasks(
            [generated(1), generated(2, [1]), generated(3, [1, 2])],
            start_id=11,
        )
        assert [t.dependencies for t in tasks] == [[], [11], [11, 12]]

    def test_forward_dependency_dropped(self) -> None:
        tasks = reconcile_tasks([generated(1, [2]), generated(2)], start_id=1)
        assert tasks[0].dependencies == []

    def test_self_dependency_dropped(self) -> None:
        tasks = reconcile_tasks([generated(1, [1])], start_id=1)
        assert tasks[0].dependencies == []

    def test_dangling_dependency_dropped(self) -> None:
        tasks = reconcile_tasks([generated(1), generated(2, [99])], start_id=1)
        assert tasks[1].dependencies == []

    def test_known_id_kept(self) -> None:
        tasks = reconcile_tasks(
            [generated(6), generated(7, [3, 6])],
            start_id=6,
            known_ids={1, 2, 3, 4, 5},
        )
        assert tasks[1].dependencies == [3, 6]

    def test_unknown_lower_id_dropped(self) -> None:
        # 4 is lower than the task but was never committed.
        tasks = reconcile_tasks([generated(6, [4])], start_id=6, known_ids={1, 2, 3})
        assert tasks[0].dependencies == []

    def test_local_mapping_wins_over_known_id(self) -> None:
        # The provider numbered from 1; its "1" is the new task 11, not old task 1.
        tasks = reconcile_tasks(
            [generated(1), generated(2, [1])],
            start_id=11,
            known_ids=set(range(1, 11)),
        )
        assert tasks[1].dependencies == [11]

    def test_duplicates_removed(self) -> None:
        tasks = reconcile_tasks([generated(1), generated(2, [1, 1, 1])], start_id=1)
        assert tasks[1].dependencies == [1]

    def test_every_dependency_lower_and_existing(self) -> None:
        known = {1, 2, 3}
        response = [
            generated(4, [1, 5, 9]),
            generated(5, [4, 3, 2, 6]),
            generated(6, [6, 5, 4, 100, 2]),
        ]
        tasks = reconcile_tasks(response, start_id=4, known_ids=known)
        existing = known | {t.id for t in tasks}

        for task in tasks:
            for dep in task.dependencies:
                assert dep < task.id
                assert dep in existing
