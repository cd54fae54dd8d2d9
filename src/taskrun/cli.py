from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from .config import load_tasks, default_task_file
from .core import TaskGraph, resolve_order
from .errors import ConfigError, CycleError, ExecutionError
from .executor import Executor
from .logging import get_logger


app = typer.Typer(add_completion=False, help="Dependency-ordered task runner")
log = get_logger("taskrun.cli")

FileOption = typer.Option(
    None, "--file", "-f", help="Task file (TOML or YAML). Defaults to $TASKRUN_FILE or tasks.toml"
)


def exit_code_for(code: int) -> int:
    """Map a child's return code to a process exit status (signals -> 128+n)."""
    if code < 0:
        return 128 - code
    return code or 1


def _load(file: Optional[Path]) -> TaskGraph:
    try:
        return load_tasks(file if file is not None else default_task_file())
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.callback()
def main_callback():
    """Load a .env file from the working directory, if present."""
    load_dotenv(Path.cwd() / ".env")


@app.command("list")
def list_tasks(file: Optional[Path] = FileOption):
    """List tasks defined in the task file."""
    graph = _load(file)
    if not len(graph):
        typer.echo("No tasks defined.")
        raise typer.Exit(code=0)
    default = graph.config.default_task
    for t in graph.tasks:
        marker = " (default)" if t.name == default else ""
        desc = f" - {t.description}" if t.description else ""
        typer.echo(f"{t.name}{marker}{desc}")


@app.command()
def order(
    name: str = typer.Argument(..., help="Task name to resolve"),
    file: Optional[Path] = FileOption,
):
    """Print the order in which a task and its dependencies would run."""
    graph = _load(file)
    try:
        resolved = resolve_order(graph, name)
    except (ConfigError, CycleError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    for step in resolved:
        typer.echo(step)


@app.command()
def run(
    name: Optional[str] = typer.Argument(None, help="Task name to run (default: config.default_task)"),
    file: Optional[Path] = FileOption,
    retries: int = typer.Option(0, help="Retries per task on failure"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log commands without running them"),
    runs_dir: Optional[Path] = typer.Option(None, help="Write a state.json run record under this directory"),
    log_file: Optional[Path] = typer.Option(None, help="Also write the run log to this file (rotated at 1 MB)"),
):
    """Run a task after all of its dependencies."""
    graph = _load(file)
    executor = Executor(
        graph, retries=retries, dry_run=dry_run, runs_dir=runs_dir, log_file=log_file
    )
    try:
        result = executor.run(name)
    except (ConfigError, CycleError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except ExecutionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=exit_code_for(e.exit_code))
    log.info("Finished %s (%d steps)", result.target, len(result.steps))


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
