"""
Task generation driver - turns a PRD file into a persisted task list.

Three request strategies are used, picked by document size and provider:

- sections: large documents are segmented, grouped and sent one group at a
  time with a short overview excerpt; a failed group is logged and skipped.
- batches: the whole document is sent several times asking for a few tasks
  each, for the one provider known to truncate long structured output.
- single: one request for all tasks.

Every strategy reconciles ids and dependencies the same way, and the task
list is checkpointed after every request.
"""

from pathlib import Path

from loguru import logger

from taskweave.ai.roles import Role
from taskweave.ai.service import AIService
from taskweave.ai.telemetry import UsageRecord, UsageSummary
from taskweave.core.context import RunContext
from taskweave.core.errors import OutputExistsError, TaskweaveError
from taskweave.decomposition.models import (
    GeneratedTask,
    ParseMode,
    ParseResult,
    PrdResponse,
    Task,
)
from taskweave.decomposition.planner import BatchPlanner
from taskweave.decomposition.prompts import build_prd_prompts, build_section_prompts
from taskweave.decomposition.reconcile import reconcile_tasks
from taskweave.decomposition.segmenter import DocumentSegmenter
from taskweave.decomposition.storage import TaskStore

# Section mode applies above either size limit when enough tasks are requested.
SECTION_MODE_MIN_KB = 30
SECTION_MODE_MIN_LINES = 1000
SECTION_MODE_MIN_TASKS = 10

# Provider that needs small batches, and the task count from which it is batched.
BATCHED_PROVIDER = "claude-code"
BATCH_MODE_MIN_TASKS = 5


def batch_size_for(size_kb: int, lines: int, num_tasks: int) -> int:
    """
    Tasks per request for batched generation.

    Larger documents leave less room for output, so fewer tasks are asked
    for per request.
    """
    if size_kb > 60 or lines > 1800:
        return 1
    if size_kb > 50 or lines > 1500:
        return 2
    if size_kb > 30 or lines > 1000 or num_tasks >= 20:
        return 3
    return 4


class TaskGenerationDriver:
    """
    Generate tasks from a PRD and persist them.

    Example:
        >>> driver = TaskGenerationDriver()
        >>> result = await driver.parse_prd(
        ...     "docs/prd.md", ".taskweave/tasks/tasks.json", 10,
        ...     context=RunContext.for_path("."),
        ... )
        >>> result.mode
        <ParseMode.SINGLE: 'single'>
    """

    def __init__(
        self,
        service: AIService | None = None,
        segmenter: DocumentSegmenter | None = None,
        planner: BatchPlanner | None = None,
    ) -> None:
        self.service = service or AIService()
        self.segmenter = segmenter or DocumentSegmenter()
        self.planner = planner or BatchPlanner()

    async def parse_prd(
        self,
        prd_path: str | Path,
        tasks_path: str | Path,
        num_tasks: int,
        *,
        force: bool = False,
        append: bool = False,
        research: bool = False,
        context: RunContext | None = None,
    ) -> ParseResult:
        """
        Parse a PRD file into tasks.

        Args:
            prd_path: PRD document to read.
            tasks_path: Task list to write.
            num_tasks: Number of tasks to request.
            force: Overwrite an existing task list.
            append: Add to an existing task list, continuing its ids.
            research: Use the research role.
            context: Project root and session for the AI service.

        Returns:
            ParseResult with the final task list and a usage summary.

        Raises:
            OutputExistsError: Task list exists and neither force nor append is set.
            AllRolesExhaustedError: A non-sectioned request failed on every role.
            TaskweaveError: The PRD is missing or empty.
        """
        if num_tasks < 1:
            raise ValueError(f"num_tasks must be positive, got {num_tasks}")

        context = context or RunContext()
        logger.info(
            f"Parsing PRD file: {prd_path}, Force: {force}, Append: {append}, Research: {research}"
        )

        try:
            store = TaskStore(tasks_path)
            existing = self._load_existing(store, append=append, force=force)
            start_id = max((t.id for t in existing), default=0) + 1

            prd_content = self._read_prd(prd_path)
            size_kb = round(len(prd_content.encode("utf-8")) / 1024)
            lines = len(prd_content.split("\n"))
            main_provider = self.service.config.get_main_provider(context.project_root)
            logger.debug(
                f"Provider={main_provider}, numTasks={num_tasks}, "
                f"PRD size={size_kb}KB ({lines} lines)"
            )

            if (
                size_kb > SECTION_MODE_MIN_KB or lines > SECTION_MODE_MIN_LINES
            ) and num_tasks >= SECTION_MODE_MIN_TASKS:
                logger.info(
                    f"Large PRD detected ({size_kb}KB, {lines} lines). "
                    "Using section-based parsing."
                )
                return await self._parse_with_sections(
                    store, str(prd_path), prd_content, num_tasks, existing, start_id,
                    research=research, context=context,
                )

            if main_provider == BATCHED_PROVIDER and num_tasks >= BATCH_MODE_MIN_TASKS and not append:
                batch_size = batch_size_for(size_kb, lines, num_tasks)
                if batch_size < num_tasks:
                    logger.info(
                        f"Entering batch mode: {num_tasks} tasks in batches of {batch_size} "
                        f"for provider {main_provider}"
                    )
                    return await self._parse_in_batches(
                        store, str(prd_path), prd_content, num_tasks, batch_size, existing, start_id,
                        research=research, context=context,
                    )

            return await self._parse_single(
                store, str(prd_path), prd_content, num_tasks, existing, start_id,
                research=research, context=context,
            )
        except TaskweaveError as e:
            logger.error(f"Error parsing PRD: {e}")
            raise

    # =========================================================================
    # STRATEGIES
    # =========================================================================

    async def _parse_with_sections(
        self,
        store: TaskStore,
        prd_path: str,
        prd_content: str,
        num_tasks: int,
        existing: list[Task],
        start_id: int,
        *,
        research: bool,
        context: RunContext,
    ) -> ParseResult:
        sections = self.segmenter.segment(prd_content)
        logger.info(f"Found {len(sections)} sections in PRD.")

        groups = self.planner.plan(sections, num_tasks)
        logger.info(f"Organized PRD into {len(groups)} task groups:")
        for group in groups:
            logger.info(f"  - {group.name}: {group.suggested_tasks} tasks")

        known_ids = {t.id for t in existing}
        generated: list[Task] = []
        records: list[UsageRecord] = []
        current_id = start_id
        failed_groups = 0

        for group in groups:
            logger.info(f"Processing section: {group.name} ({group.suggested_tasks} tasks)")
            system_prompt, prompt = build_section_prompts(
                group=group, prd_path=prd_path, next_id=current_id, research=research
            )

            try:
                raw_tasks, record = await self._generate(
                    system_prompt, prompt,
                    research=research, context=context, command_name="parse-prd-section",
                )
            except TaskweaveError as e:
                failed_groups += 1
                logger.error(f'Error processing section "{group.name}": {e}')
            else:
                tasks = reconcile_tasks(raw_tasks, current_id, known_ids)
                known_ids.update(t.id for t in tasks)
                generated.extend(tasks)
                current_id += len(tasks)
                records.append(record)
                logger.success(f'Generated {len(tasks)} tasks for section "{group.name}"')

            store.checkpoint(existing + generated)

        final_tasks = existing + generated
        store.write(final_tasks)

        if failed_groups:
            logger.warning(f"{failed_groups} of {len(groups)} section groups failed and were skipped")
        logger.success(
            f"Successfully generated {len(generated)} tasks across {len(groups)} sections"
        )

        return ParseResult(
            success=bool(generated) or not groups,
            tasks_path=str(store.path),
            mode=ParseMode.SECTIONS,
            tasks=final_tasks,
            new_task_count=len(generated),
            telemetry=UsageSummary.from_records(records),
        )

    async def _parse_in_batches(
        self,
        store: TaskStore,
        prd_path: str,
        prd_content: str,
        num_tasks: int,
        batch_size: int,
        existing: list[Task],
        start_id: int,
        *,
        research: bool,
        context: RunContext,
    ) -> ParseResult:
        known_ids = {t.id for t in existing}
        generated: list[Task] = []
        records: list[UsageRecord] = []
        current_id = start_id
        remaining = num_tasks
        batch_number = 1

        while remaining > 0:
            size = min(batch_size, remaining)
            logger.info(
                f"Processing batch {batch_number}: {size} tasks (starting from ID {current_id})"
            )
            system_prompt, prompt = build_prd_prompts(
                prd_content=prd_content,
                prd_path=prd_path,
                num_tasks=size,
                next_id=current_id,
                research=research,
            )

            raw_tasks, record = await self._generate(
                system_prompt, prompt,
                research=research, context=context, command_name="parse-prd",
            )
            tasks = reconcile_tasks(raw_tasks, current_id, known_ids)
            known_ids.update(t.id for t in tasks)
            generated.extend(tasks)
            current_id += len(tasks)
            records.append(record)

            store.checkpoint(existing + generated)

            remaining -= size
            if remaining > 0:
                logger.info(f"Batch {batch_number} completed. {remaining} tasks remaining.")
            batch_number += 1

        logger.success(
            f"All {num_tasks} tasks generated across {batch_number - 1} batches"
        )

        return ParseResult(
            success=True,
            tasks_path=str(store.path),
            mode=ParseMode.BATCHES,
            tasks=existing + generated,
            new_task_count=len(generated),
            telemetry=UsageSummary.from_records(records),
        )

    async def _parse_single(
        self,
        store: TaskStore,
        prd_path: str,
        prd_content: str,
        num_tasks: int,
        existing: list[Task],
        start_id: int,
        *,
        research: bool,
        context: RunContext,
    ) -> ParseResult:
        system_prompt, prompt = build_prd_prompts(
            prd_content=prd_content,
            prd_path=prd_path,
            num_tasks=num_tasks,
            next_id=start_id,
            research=research,
        )

        logger.info(
            f"Calling AI service to generate tasks from PRD"
            f"{' with research-backed analysis' if research else ''}..."
        )
        raw_tasks, record = await self._generate(
            system_prompt, prompt,
            research=research, context=context, command_name="parse-prd",
        )
        tasks = reconcile_tasks(raw_tasks, start_id, {t.id for t in existing})

        final_tasks = existing + tasks
        store.write(final_tasks)
        logger.success(
            f"Successfully {'appended' if existing else 'generated'} {len(tasks)} tasks in {store.path}"
        )

        return ParseResult(
            success=True,
            tasks_path=str(store.path),
            mode=ParseMode.SINGLE,
            tasks=final_tasks,
            new_task_count=len(tasks),
            telemetry=UsageSummary.from_records([record]),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _generate(
        self,
        system_prompt: str,
        prompt: str,
        *,
        research: bool,
        context: RunContext,
        command_name: str,
    ) -> tuple[list[GeneratedTask], UsageRecord]:
        result = await self.service.generate_object_service(
            role=Role.RESEARCH if research else Role.MAIN,
            context=context,
            system_prompt=system_prompt,
            prompt=prompt,
            command_name=command_name,
            schema=PrdResponse,
            object_name="tasks_data",
        )
        if not isinstance(result.object, PrdResponse):
            raise TaskweaveError("AI service returned unexpected data structure after validation.")
        return result.object.tasks, result.telemetry

    @staticmethod
    def _load_existing(store: TaskStore, *, append: bool, force: bool) -> list[Task]:
        if not store.exists():
            return []

        if append:
            logger.info(f"Append mode enabled. Reading existing tasks from {store.path}")
            task_list = store.read()
            if task_list is None:
                logger.warning(
                    f"Could not read existing tasks from {store.path} or format is invalid. "
                    "Proceeding without appending."
                )
                return []
            if task_list.tasks:
                logger.info(
                    f"Found {len(task_list.tasks)} existing tasks. "
                    f"Next ID will be {task_list.max_id + 1}."
                )
            return task_list.tasks

        if not force:
            raise OutputExistsError(
                f"Output file {store.path} already exists. Use --force to overwrite or --append."
            )

        logger.info(f"Force flag enabled. Overwriting existing file: {store.path}")
        return []

    @staticmethod
    def _read_prd(prd_path: str | Path) -> str:
        logger.info(f"Reading PRD content from {prd_path}")
        try:
            content = Path(prd_path).read_text(encoding="utf-8")
        except OSError as e:
            raise TaskweaveError(f"Input file {prd_path} could not be read: {e}") from e
        if not content.strip():
            raise TaskweaveError(f"Input file {prd_path} is empty or could not be read.")
        return content
