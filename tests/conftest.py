# tests/conftest.py

from __future__ import annotations

import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Callable, Iterable

import pytest

from .fakes import FakeRunner


EXAMPLES_DIR = Path(__file__).resolve().parents[1] / "examples"


def py_task(name: str, code: str, deps: Iterable[str] = (), extra: str = "") -> str:
    """TOML block for a task that runs ``code`` with the current interpreter."""
    lines = [
        f"[tasks.{name}]",
        f"command = '{sys.executable}'",
        f"args = ['-c', {json.dumps(code)}]",
    ]
    deps = list(deps)
    if deps:
        lines.append(f"dependencies = {json.dumps(deps)}")
    if extra:
        lines.append(extra)
    return "\n".join(lines) + "\n"


@pytest.fixture()
def task_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a task file into tmp_path and return its path."""

    def write(text: str, name: str = "tasks.toml") -> Path:
        p = tmp_path / name
        p.write_text(textwrap.dedent(text), encoding="utf-8")
        return p

    return write


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def detach_log_files():
    """Remove file handlers a test attached to the "taskrun" logger."""
    yield
    logger = logging.getLogger("taskrun")
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()
