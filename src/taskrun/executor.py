from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable

from .core import Task, TaskGraph, resolve_order
from .errors import ConfigError, ExecutionError
from .logging import get_logger


# Exit code reported when a command cannot be started at all (shell convention).
EXIT_NOT_STARTED = 127

Runner = Callable[..., subprocess.CompletedProcess]


def slugify(s: str) -> str:
    """Make a task name safe to use as a single path component."""
    slug = (s or "").strip().replace(" ", "_").replace("/", "-").replace("\\", "-")
    if not slug.strip("."):
        slug = slug.replace(".", "_") or "_"
    return slug


@dataclass
class StepResult:
    name: str
    status: str
    exit_code: int | None = None


@dataclass
class RunResult:
    target: str
    run_id: str
    order: list[str]
    steps: list[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(s.status != "error" for s in self.steps)


class Executor:
    """Runs the dependency closure of a task, one child process at a time."""

    def __init__(
        self,
        graph: TaskGraph,
        retries: int = 0,
        dry_run: bool = False,
        runs_dir: str | Path | None = None,
        runner: Runner = subprocess.run,
        log_file: str | Path | None = None,
    ):
        self.graph = graph
        self.retries = max(0, retries)
        self.dry_run = dry_run
        self.runs_dir = Path(runs_dir) if runs_dir else None
        self.runner = runner
        if log_file:
            # Step loggers are children of "taskrun" and propagate into the file.
            get_logger("taskrun", log_file=Path(log_file))
        self.logger = get_logger("taskrun.executor")

    def run(self, target: str | None = None) -> RunResult:
        target = target or self.graph.config.default_task
        if not target:
            raise ConfigError("No task given and no default_task configured")
        order = resolve_order(self.graph, target)
        run_id = time.strftime("%Y%m%d-%H%M%S")
        result = RunResult(target=target, run_id=run_id, order=list(order))
        run_dir = self.runs_dir / slugify(target) / run_id if self.runs_dir else None
        if run_dir is not None:
            os.makedirs(run_dir, exist_ok=True)

        self.logger.info("Resolved order: %s", " → ".join(order))

        for name in order:
            task = self.graph[name]
            step_logger = get_logger(f"taskrun.run.{name}")
            attempt = 0
            while True:
                try:
                    step_logger.info("Run: %s", name)
                    status = self._run_task(task, step_logger)
                    result.steps.append(StepResult(name=name, status=status, exit_code=0))
                    break
                except ExecutionError as e:
                    attempt += 1
                    step_logger.error(
                        "Step failed (%s), attempt %d/%d: %s",
                        name,
                        attempt,
                        self.retries + 1,
                        e,
                    )
                    if attempt <= self.retries:
                        continue
                    if task.ignore_errors:
                        step_logger.warning("Ignoring failure of %s", name)
                        result.steps.append(
                            StepResult(name=name, status="ignored", exit_code=e.exit_code)
                        )
                        break
                    result.steps.append(
                        StepResult(name=name, status="error", exit_code=e.exit_code)
                    )
                    if run_dir is not None:
                        _write_state(run_dir, result)
                    raise
            if run_dir is not None:
                _write_state(run_dir, result)
        return result

    def _run_task(self, task: Task, logger: logging.Logger) -> str:
        env = {**os.environ, **self.graph.config.env, **task.env}
        cwd = task.cwd or self.graph.config.base_dir

        if self.dry_run:
            if task.install_crate is not None:
                logger.info(
                    "Would check %s, else run: %s",
                    " ".join(task.install_crate.test_argv),
                    " ".join(task.install_crate.install_argv),
                )
            if task.command is not None:
                logger.info("Would run: %s", " ".join(task.argv))
            return "dry-run"

        status = "ok"
        if task.install_crate is not None:
            if self._is_installed(task, cwd, env):
                logger.info("Skip (installed): %s", task.install_crate.binary)
                status = "skipped"
            else:
                logger.info("Installing crate %s", task.install_crate.crate_name)
                self._spawn(task, task.install_crate.install_argv, cwd, env)
        if task.command is not None:
            self._spawn(task, task.argv, cwd, env)
            status = "ok"
        elif task.install_crate is None:
            logger.debug("No command for %s; dependencies only", task.name)
        return status

    def _is_installed(self, task: Task, cwd: Path, env: dict) -> bool:
        argv = task.install_crate.test_argv
        try:
            proc = self.runner(
                argv,
                cwd=cwd,
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            return False
        return proc.returncode == 0

    def _spawn(self, task: Task, argv: list[str], cwd: Path, env: dict) -> None:
        try:
            proc = self.runner(argv, cwd=cwd, env=env, check=False)
        except OSError as e:
            raise ExecutionError(
                task.name,
                EXIT_NOT_STARTED,
                f"Task {task.name} could not start {argv[0]}: {e}",
            ) from e
        if proc.returncode != 0:
            raise ExecutionError(task.name, proc.returncode)


def _write_state(run_dir: Path, result: RunResult) -> None:
    state = {
        "target": result.target,
        "run_id": result.run_id,
        "order": result.order,
        "steps": [asdict(s) for s in result.steps],
        "python": sys.version,
    }
    with open(run_dir / "state.json", "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)
