"""
Prompt templates for PRD decomposition.

Two prompt families are provided: whole-document prompts (single request or
fixed-size batches over the full PRD) and section prompts (one group of
sections plus a short overview excerpt).
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taskweave.decomposition.models import TaskGroup

OVERVIEW_EXCERPT_CHARS = 500


# =============================================================================
# TEMPLATE MODEL
# =============================================================================


class PromptTemplate(BaseModel):
    """A reusable prompt template."""

    model_config = ConfigDict(frozen=True)

    name: str
    template: str
    description: str = ""
    variables: list[str] = Field(default_factory=list)

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Raises:
            KeyError: If a declared variable is missing.
        """
        missing = self.get_missing_variables(**kwargs)
        if missing:
            raise KeyError(f"Missing variables for template '{self.name}': {missing}")
        return self.template.format(**kwargs)

    def get_missing_variables(self, **kwargs: Any) -> list[str]:
        """Get list of variables not provided."""
        return [v for v in self.variables if v not in kwargs]


# =============================================================================
# RESEARCH ADDITIONS
# =============================================================================


RESEARCH_ADDITION = """
Before breaking down the PRD into tasks, you will:
1. Research the current technologies, libraries, frameworks and best practices appropriate for this project
2. Identify technical challenges, security concerns or scalability issues the PRD does not mention, without discarding explicit requirements or adding needless complexity
3. Take current industry standards into account rather than relying on possibly outdated knowledge
4. Evaluate alternative implementation approaches and recommend the most direct one
5. Include specific library versions, useful APIs and concrete implementation guidance

Your breakdown should use this research to give more detailed implementation guidance, more accurate dependencies and more precise technology recommendations than the PRD text alone allows, while keeping every explicit requirement and detail of the PRD."""

SECTION_RESEARCH_ADDITION = """
Before breaking down this section into tasks, research the current technologies and best practices for the features it describes."""


# =============================================================================
# WHOLE-DOCUMENT PROMPTS
# =============================================================================


PRD_SYSTEM_PROMPT = PromptTemplate(
    name="prd_system",
    description="System prompt for generating tasks from a whole PRD",
    template="""You are an AI assistant specialized in analyzing Product Requirements Documents (PRDs) and generating a structured, logically ordered, dependency-aware list of development tasks in JSON format.{research_addition}

Analyze the provided PRD and generate approximately {num_tasks} top-level development tasks.
Each task is a logical unit of work that implements part of the requirements by the most direct route, without overengineering. Include implementation details and a test strategy for each task.
Assign sequential IDs starting from {next_id}. Infer title, description, details and test strategy from the PRD content only.
Respond ONLY with a valid JSON object with the keys "tasks" and "metadata". Do not include any explanation or markdown formatting.

Each task has this JSON structure:
{{
    "id": number,
    "title": string,
    "description": string,
    "status": "pending",
    "dependencies": number[] (IDs of tasks this depends on),
    "priority": "high" | "medium" | "low",
    "details": string (implementation details),
    "testStrategy": string (validation approach)
}}

Guidelines:
1. Unless complexity warrants otherwise, create exactly {num_tasks} tasks, numbered sequentially starting from {next_id}
2. Each task is atomic and has a single responsibility
3. Order tasks logically: setup and core functionality first, then advanced features
4. Include a clear validation approach for each task
5. A task may only depend on tasks with lower IDs, including existing tasks with IDs below {next_id}
6. Assign priority (high/medium/low) by criticality and dependency order
7. Put implementation guidance in the "details" field{details_research_note}
8. If the PRD names specific libraries, schemas, frameworks or tech stacks, follow them strictly
9. Fill gaps the PRD leaves open while keeping every explicit requirement{research_guideline}""",
    variables=["research_addition", "num_tasks", "next_id", "details_research_note", "research_guideline"],
)


PRD_USER_PROMPT = PromptTemplate(
    name="prd_user",
    description="User prompt carrying the full PRD",
    template="""Here is the Product Requirements Document (PRD) to break down into approximately {num_tasks} tasks, starting IDs from {next_id}:{research_reminder}

{prd_content}

Return your response in this format:
{{
    "tasks": [
        {{
            "id": {next_id},
            "title": "Setup Project Repository",
            "description": "...",
            ...
        }},
        ...
    ],
    "metadata": {{
        "projectName": "PRD Implementation",
        "totalTasks": {num_tasks},
        "sourceFile": "{prd_path}",
        "generatedAt": "{generated_at}"
    }}
}}""",
    variables=["num_tasks", "next_id", "research_reminder", "prd_content", "prd_path", "generated_at"],
)


# =============================================================================
# SECTION PROMPTS
# =============================================================================


SECTION_SYSTEM_PROMPT = PromptTemplate(
    name="section_system",
    description="System prompt for generating tasks from one group of PRD sections",
    template="""You are analyzing a SECTION of a Product Requirements Document (PRD).{research_addition}

PROJECT OVERVIEW (for context only):
{overview_excerpt}

CURRENT SECTION: "{group_name}"
Generate exactly {num_tasks} development tasks for ONLY the features described in this section.

Guidelines:
1. Create exactly {num_tasks} tasks, numbered sequentially starting from {next_id}
2. Keep descriptions under 300 characters
3. Keep the details field under 800 characters
4. Focus ONLY on features from this section
5. Tasks must be atomic and implementable
6. Only depend on tasks with lower IDs

Respond ONLY with valid JSON matching this structure:
{{
  "tasks": [...],
  "metadata": {{
    "projectName": "string",
    "totalTasks": number,
    "sourceFile": "string",
    "generatedAt": "YYYY-MM-DD"
  }}
}}""",
    variables=["research_addition", "overview_excerpt", "group_name", "num_tasks", "next_id"],
)


SECTION_USER_PROMPT = PromptTemplate(
    name="section_user",
    description="User prompt carrying one group's section content",
    template="""Here is the section content to analyze:

{section_content}

Generate {num_tasks} tasks starting from ID {next_id}.

Return response in this format:
{{
  "tasks": [
    {{
      "id": {next_id},
      "title": "...",
      "description": "...",
      "status": "pending",
      "priority": "medium",
      "dependencies": [],
      "details": "...",
      "testStrategy": "..."
    }}
  ],
  "metadata": {{
    "projectName": "{group_name} Implementation",
    "totalTasks": {num_tasks},
    "sourceFile": "{prd_path}",
    "generatedAt": "{generated_at}"
  }}
}}""",
    variables=["section_content", "num_tasks", "next_id", "group_name", "prd_path", "generated_at"],
)


# =============================================================================
# BUILDERS
# =============================================================================


def overview_excerpt(overview: str, limit: int = OVERVIEW_EXCERPT_CHARS) -> str:
    """Truncate overview text for prompt context."""
    if len(overview) <= limit:
        return overview
    return overview[:limit] + "..."


def build_prd_prompts(
    *,
    prd_content: str,
    prd_path: str,
    num_tasks: int,
    next_id: int,
    research: bool = False,
    generated_at: str | None = None,
) -> tuple[str, str]:
    """Build (system, user) prompts for a whole-document request."""
    system = PRD_SYSTEM_PROMPT.format(
        research_addition=RESEARCH_ADDITION if research else "",
        num_tasks=num_tasks,
        next_id=next_id,
        details_research_note=(
            ", with specific libraries and version recommendations based on your research"
            if research
            else ""
        ),
        research_guideline=(
            "\n10. For each task, include specific, actionable guidance based on "
            "current industry standards found through research"
            if research
            else ""
        ),
    )
    user = PRD_USER_PROMPT.format(
        num_tasks=num_tasks,
        next_id=next_id,
        research_reminder=(
            "\n\nRemember to research current best practices and technologies before "
            "the breakdown so the details are specific and actionable."
            if research
            else ""
        ),
        prd_content=prd_content,
        prd_path=prd_path,
        generated_at=generated_at or date.today().isoformat(),
    )
    return system, user


def build_section_prompts(
    *,
    group: TaskGroup,
    prd_path: str,
    next_id: int,
    research: bool = False,
    generated_at: str | None = None,
) -> tuple[str, str]:
    """Build (system, user) prompts for one task group."""
    system = SECTION_SYSTEM_PROMPT.format(
        research_addition=SECTION_RESEARCH_ADDITION if research else "",
        overview_excerpt=overview_excerpt(group.overview),
        group_name=group.name,
        num_tasks=group.suggested_tasks,
        next_id=next_id,
    )
    user = SECTION_USER_PROMPT.format(
        section_content=group.content,
        num_tasks=group.suggested_tasks,
        next_id=next_id,
        group_name=group.name,
        prd_path=prd_path,
        generated_at=generated_at or date.today().isoformat(),
    )
    return system, user
