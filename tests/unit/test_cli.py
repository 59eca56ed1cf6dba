"""Tests for the Typer CLI."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from taskweave import __version__
from taskweave.ai.telemetry import UsageSummary
from taskweave.cli.main import app
from taskweave.core.errors import OutputExistsError
from taskweave.decomposition.models import ParseMode, ParseResult, Task

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[MagicMock, None, None]:
    """Keep the CLI callback from replacing loguru handlers."""
    with patch("taskweave.core.logging.configure_logging") as configure:
        yield configure


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Render tables without wrapping cells."""
    monkeypatch.setattr("taskweave.cli.main.console", Console(width=200))


@pytest.fixture
def driver() -> Generator[MagicMock, None, None]:
    with patch("taskweave.decomposition.driver.TaskGenerationDriver") as driver_cls:
        yield driver_cls.return_value


class TestCallback:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_debug_flag(self, quiet_logging: MagicMock, tmp_path: Path) -> None:
        runner.invoke(app, ["--debug", "models", "-p", str(tmp_path)])

        settings = quiet_logging.call_args.args[0]
        assert settings.taskweave_debug is True


class TestParsePrd:
    def test_success(self, driver: MagicMock, tmp_path: Path) -> None:
        prd = tmp_path / "prd.md"
        prd.write_text("# Product\n")
        driver.parse_prd = AsyncMock(
            return_value=ParseResult(
                success=True,
                tasks_path=str(tmp_path / "tasks.json"),
                mode=ParseMode.SINGLE,
                tasks=[Task(id=1, title="A"), Task(id=2, title="B")],
                new_task_count=2,
                telemetry=UsageSummary(calls=1, input_tokens=10, output_tokens=5, total_tokens=15),
            )
        )

        result = runner.invoke(app, ["parse-prd", str(prd), "-n", "2", "-p", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Generated 2 new tasks" in result.output
        assert "AI Usage Summary" in result.output
        args, kwargs = driver.parse_prd.call_args
        assert args[1] == tmp_path.resolve() / ".taskweave" / "tasks" / "tasks.json"
        assert args[2] == 2
        assert kwargs["context"].project_root == str(tmp_path.resolve())

    def test_error_exits_nonzero(self, driver: MagicMock, tmp_path: Path) -> None:
        driver.parse_prd = AsyncMock(side_effect=OutputExistsError("Output file tasks.json already exists."))

        result = runner.invoke(app, ["parse-prd", str(tmp_path / "prd.md"), "-p", str(tmp_path)])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_failed_run_exits_nonzero(self, driver: MagicMock, tmp_path: Path) -> None:
        driver.parse_prd = AsyncMock(
            return_value=ParseResult(success=False, tasks_path="tasks.json", mode=ParseMode.SECTIONS)
        )

        result = runner.invoke(app, ["parse-prd", str(tmp_path / "prd.md")])

        assert result.exit_code == 1

    def test_num_tasks_minimum(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["parse-prd", str(tmp_path / "prd.md"), "-n", "0"])
        assert result.exit_code != 0


class TestModels:
    def test_lists_roles(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["models", "-p", str(tmp_path)])

        assert result.exit_code == 0, result.output
        for role in ("main", "fallback", "research"):
            assert role in result.output
        assert "claude-code" in result.output
