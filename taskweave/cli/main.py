"""Main CLI entry point using Typer."""

from pathlib import Path

import anyio
import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from taskweave import __version__
from taskweave.ai.telemetry import UsageSummary

app = typer.Typer(
    name="taskweave",
    help="Taskweave - turn requirement documents into dependency-ordered task lists",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()

DEFAULT_TASKS_FILE = Path(".taskweave") / "tasks" / "tasks.json"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]Taskweave[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
) -> None:
    """
    Taskweave - break a PRD into tasks using configurable AI providers.

    Roles (main, fallback, research) map to providers in
    .taskweave/config.json; failed roles fall back to the next one.
    """
    from taskweave.core.config import get_settings
    from taskweave.core.logging import configure_logging

    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"taskweave_debug": True})
    configure_logging(settings)


def render_usage(summary: UsageSummary) -> None:
    """Print an AI usage summary panel."""
    if not summary.calls:
        return
    console.print(
        Panel(
            f"[bold]Calls:[/bold] {summary.calls}\n"
            f"[bold]Tokens:[/bold] {summary.input_tokens} in / {summary.output_tokens} out "
            f"({summary.total_tokens} total)\n"
            f"[bold]Est. cost:[/bold] {summary.total_cost:.6f} {summary.currency}",
            title="[bold cyan]AI Usage Summary[/bold cyan]",
            border_style="cyan",
        )
    )


@app.command("parse-prd")
def parse_prd(
    prd: Path = typer.Argument(..., help="Path to the PRD document"),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Task list file (defaults to .taskweave/tasks/tasks.json in the project)",
    ),
    num_tasks: int = typer.Option(
        10,
        "--num-tasks",
        "-n",
        min=1,
        help="Number of tasks to generate",
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing task list"),
    append: bool = typer.Option(False, "--append", "-a", help="Append to an existing task list"),
    research: bool = typer.Option(False, "--research", "-r", help="Use the research role"),
    project_path: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Project root holding .taskweave/config.json",
    ),
) -> None:
    """
    Generate tasks from a PRD.

    Example:
        taskweave parse-prd docs/prd.md -n 15
        taskweave parse-prd docs/prd.md --append -n 5
    """
    from taskweave.core.context import RunContext
    from taskweave.core.errors import TaskweaveError
    from taskweave.decomposition.driver import TaskGenerationDriver

    root = project_path.resolve()
    tasks_path = output or root / DEFAULT_TASKS_FILE

    async def execute() -> None:
        driver = TaskGenerationDriver()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Generating {num_tasks} tasks from {prd}...", total=None)
            result = await driver.parse_prd(
                prd,
                tasks_path,
                num_tasks,
                force=force,
                append=append,
                research=research,
                context=RunContext.for_path(root),
            )
            progress.update(task, completed=True)

        color = "green" if result.success else "red"
        console.print(
            Panel(
                f"Generated {result.new_task_count} new tasks "
                f"({result.mode.value} mode). Total tasks in {result.tasks_path}: {len(result.tasks)}",
                border_style=color,
            )
        )
        render_usage(result.telemetry)

        if not result.success:
            raise typer.Exit(code=1)

    try:
        anyio.run(execute)
    except TaskweaveError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def models(
    project_path: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Project root holding .taskweave/config.json",
    ),
) -> None:
    """
    Show the provider and model configured for each role.
    """
    from taskweave.ai.config_manager import ConfigManager
    from taskweave.ai.roles import ROLE_SEQUENCE

    config = ConfigManager()
    root = str(project_path.resolve())

    table = Table(title="Configured Roles")
    table.add_column("Role", style="cyan")
    table.add_column("Provider", style="bold")
    table.add_column("Model")
    table.add_column("Max tokens", justify="right")
    table.add_column("Temperature", justify="right")
    table.add_column("API key")

    for role in ROLE_SEQUENCE:
        provider = getattr(config, f"get_{role.value}_provider")(root)
        model_id = getattr(config, f"get_{role.value}_model_id")(root)
        params = config.get_parameters_for_role(role.value, root)
        key_ok = bool(provider) and config.is_api_key_set(provider, None, root)
        table.add_row(
            role.value,
            provider or "-",
            model_id or "-",
            str(params["max_tokens"]),
            f"{params['temperature']:.2f}",
            "[green]ok[/green]" if key_ok else "[red]missing[/red]",
        )

    console.print(table)


if __name__ == "__main__":
    app()
