"""
Batch planner - groups sections into generation batches.

Large sections (and every level-1 section) get a batch of their own; small
neighbouring sections are merged until a line budget is reached. Each batch
is then given a share of the requested task count proportional to its line
count, adjusted so the shares add up to the requested total.
"""

from loguru import logger

from taskweave.decomposition.models import Section, TaskGroup

# Section counts above this multiple of the task count mean the document is
# finely segmented and merging is made more aggressive.
OVER_SEGMENTATION_RATIO = 1.5

MAX_LINES_PER_GROUP = 500
MIN_LINES_FOR_OWN_GROUP = 300
MAX_LINES_PER_GROUP_OVER_SEGMENTED = 800
MIN_LINES_FOR_OWN_GROUP_OVER_SEGMENTED = 500


class BatchPlanner:
    """
    Plan task groups for a segmented document.

    Example:
        >>> groups = BatchPlanner().plan(sections, total_tasks=10)
        >>> sum(g.suggested_tasks for g in groups)
        10
    """

    def plan(self, sections: list[Section], total_tasks: int) -> list[TaskGroup]:
        """
        Group sections and allocate the task count across groups.

        Args:
            sections: Segmenter output, overview included.
            total_tasks: Number of tasks to generate across all groups.

        Returns:
            Task groups in document order. The overview text is attached to
            every group as shared context.

        Raises:
            ValueError: If total_tasks is not positive.
        """
        if total_tasks < 1:
            raise ValueError(f"total_tasks must be positive, got {total_tasks}")

        task_sections = [s for s in sections if not s.is_overview]
        overview = next((s for s in sections if s.is_overview), None)
        overview_text = overview.content if overview else ""

        if not task_sections:
            if overview is None:
                return []
            # Overview-only document: one group with everything.
            return [
                TaskGroup(
                    name=overview.title,
                    sections=[overview],
                    line_count=overview.line_count,
                    is_large=True,
                    suggested_tasks=total_tasks,
                    overview=overview_text,
                )
            ]

        groups = self._group(task_sections, total_tasks)
        if len(groups) > total_tasks:
            groups = self._merge_down(groups, total_tasks)
        self._allocate(groups, total_tasks)

        for group in groups:
            group.overview = overview_text

        return groups

    def _group(self, sections: list[Section], total_tasks: int) -> list[TaskGroup]:
        over_segmented = len(sections) > total_tasks * OVER_SEGMENTATION_RATIO
        if over_segmented:
            max_lines = MAX_LINES_PER_GROUP_OVER_SEGMENTED
            min_own = MIN_LINES_FOR_OWN_GROUP_OVER_SEGMENTED
            logger.debug(
                f"{len(sections)} sections for {total_tasks} tasks; merging sections more aggressively"
            )
        else:
            max_lines = MAX_LINES_PER_GROUP
            min_own = MIN_LINES_FOR_OWN_GROUP

        groups: list[TaskGroup] = []
        current: TaskGroup | None = None

        for section in sections:
            if section.line_count > min_own or section.level == 1:
                if current:
                    groups.append(current)
                    current = None
                groups.append(
                    TaskGroup(
                        name=section.title,
                        sections=[section],
                        line_count=section.line_count,
                        is_large=True,
                    )
                )
            elif current is None or current.line_count + section.line_count > max_lines:
                if current:
                    groups.append(current)
                current = TaskGroup(
                    name=section.title,
                    sections=[section],
                    line_count=section.line_count,
                )
            else:
                current.sections.append(section)
                current.line_count += section.line_count
                current.name = f"{current.sections[0].title} + {len(current.sections) - 1} more"

        if current:
            groups.append(current)

        return groups

    @staticmethod
    def _allocate(groups: list[TaskGroup], total_tasks: int) -> None:
        total_lines = sum(g.line_count for g in groups)

        for group in groups:
            share = group.line_count / total_lines if total_lines else 1 / len(groups)
            # Half-up rounding, at least one task per group.
            group.suggested_tasks = max(1, int(total_tasks * share + 0.5))

        current_total = sum(g.suggested_tasks for g in groups)

        while current_total > total_tasks:
            reducible = [g for g in groups if g.suggested_tasks > 1]
            if not reducible:
                break
            largest = max(reducible, key=lambda g: g.suggested_tasks)
            largest.suggested_tasks -= 1
            current_total -= 1

        while current_total < total_tasks:
            largest = max(groups, key=lambda g: g.line_count)
            largest.suggested_tasks += 1
            current_total += 1

    @staticmethod
    def _merge_down(groups: list[TaskGroup], total_tasks: int) -> list[TaskGroup]:
        """Merge adjacent groups until there is at most one group per task.

        The adjacent pair with the fewest combined lines is merged first.
        """
        logger.info(
            f"{len(groups)} groups for {total_tasks} tasks; merging adjacent groups "
            "so every group gets at least one task"
        )
        groups = list(groups)
        while len(groups) > total_tasks:
            index = min(
                range(len(groups) - 1),
                key=lambda i: groups[i].line_count + groups[i + 1].line_count,
            )
            left, right = groups[index], groups[index + 1]
            sections = left.sections + right.sections
            groups[index : index + 2] = [
                TaskGroup(
                    name=f"{sections[0].title} + {len(sections) - 1} more",
                    sections=sections,
                    line_count=left.line_count + right.line_count,
                    is_large=left.is_large or right.is_large,
                )
            ]
        return groups
