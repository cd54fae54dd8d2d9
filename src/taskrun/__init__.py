"""Small dependency-ordered task runner.

Loads a declarative task file (TOML or YAML), resolves the dependency closure
of a task, and runs each task's command in order with a Typer CLI on top.
"""

from .config import load_tasks, parse_tasks
from .core import InstallCrate, RunConfig, Task, TaskGraph, resolve_order
from .errors import ConfigError, CycleError, ExecutionError, TaskNotFoundError, TaskrunError
from .executor import Executor, RunResult, StepResult

__all__ = [
    "ConfigError",
    "CycleError",
    "ExecutionError",
    "Executor",
    "InstallCrate",
    "RunConfig",
    "RunResult",
    "StepResult",
    "Task",
    "TaskGraph",
    "TaskNotFoundError",
    "TaskrunError",
    "load_tasks",
    "parse_tasks",
    "resolve_order",
]
