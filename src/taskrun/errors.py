"""Exceptions"""

from __future__ import annotations

from typing import Sequence


class TaskrunError(Exception):
    """Base class for all errors raised by taskrun."""


class ConfigError(TaskrunError):
    """Raised when a task file is missing, malformed or inconsistent."""


class TaskNotFoundError(ConfigError):
    """Raised when a requested task is not defined in the task file."""

    def __init__(self, name: str):
        super().__init__(f"Task not found: {name}")
        self.name = name


class CycleError(TaskrunError):
    """Raised when the dependencies of a task form a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Cycle detected: " + " -> ".join(self.cycle))


class ExecutionError(TaskrunError):
    """Raised when a task's child process fails to start or exits non-zero."""

    def __init__(self, task: str, exit_code: int, message: str | None = None):
        self.task = task
        self.exit_code = exit_code
        super().__init__(message or f"Task {task} failed with exit code {exit_code}")
