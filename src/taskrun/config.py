"""Task file loading.

A task file is TOML or YAML with a ``tasks`` table mapping task names to
records, plus optional ``config``, ``env`` and ``extend`` keys. The result is
an immutable :class:`~taskrun.core.TaskGraph` carrying its :class:`RunConfig`.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import yaml

from .core import InstallCrate, RunConfig, Task, TaskGraph
from .errors import ConfigError
from .logging import get_logger


DEFAULT_TASK_FILE = "tasks.toml"

TASK_FIELDS = {
    "command",
    "args",
    "dependencies",
    "clear",
    "install_crate",
    "description",
    "env",
    "cwd",
    "ignore_errors",
}
INSTALL_FIELDS = {"crate_name", "binary", "test_arg"}

log = get_logger("taskrun.config")


def default_task_file() -> Path:
    return Path(os.getenv("TASKRUN_FILE", DEFAULT_TASK_FILE))


def read_document(path: str | Path) -> dict:
    """Parse a TOML or YAML file into a plain dict, chosen by suffix."""
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Task file not found: {p}")
    suffix = p.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            with open(p, "rb") as f:
                data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, UnicodeDecodeError, OSError) as e:
        raise ConfigError(f"Cannot parse {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {p} must be a table")
    return data


def _table(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{what} must be a table")
    return value


def merge_task(base: dict, override: dict) -> dict:
    """Merge an extending task definition onto the inherited one.

    ``clear = true`` on the override drops the inherited definition. Otherwise
    fields are replaced one by one, except ``env`` whose keys are merged.
    """
    if override.get("clear"):
        return dict(override)
    merged = dict(base)
    for key, value in override.items():
        if key == "env" and isinstance(value, dict) and isinstance(base.get("env"), dict):
            merged["env"] = {**base["env"], **value}
        else:
            merged[key] = value
    return merged


def _load_merged(path: Path, seen: tuple[Path, ...]) -> dict:
    resolved = path.resolve()
    if resolved in seen:
        chain = " -> ".join(str(p) for p in (*seen, resolved))
        raise ConfigError(f"Circular extend: {chain}")
    doc = read_document(path)
    unknown = set(doc) - {"extend", "config", "env", "tasks"}
    if unknown:
        raise ConfigError(f"Unknown top-level keys in {path}: {', '.join(sorted(unknown))}")

    tasks = _table(doc.get("tasks"), "tasks")
    env = _table(doc.get("env"), "env")
    config = _table(doc.get("config"), "config")

    extend = doc.get("extend")
    if extend is None:
        return {"tasks": dict(tasks), "env": dict(env), "config": dict(config)}
    if not isinstance(extend, str):
        raise ConfigError(f"extend in {path} must be a path string")

    base_path = path.parent / extend
    log.debug("%s extends %s", path, base_path)
    base = _load_merged(base_path, (*seen, resolved))
    merged_tasks = dict(base["tasks"])
    for name, record in tasks.items():
        if not isinstance(record, dict):
            raise ConfigError(f"Task {name} must be a table")
        inherited = merged_tasks.get(name)
        merged_tasks[name] = merge_task(inherited, record) if isinstance(inherited, dict) else record
    return {
        "tasks": merged_tasks,
        "env": {**base["env"], **env},
        "config": {**base["config"], **config},
    }


def _env_values(value: Any, what: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for k, v in _table(value, what).items():
        if isinstance(v, bool):
            out[str(k)] = "true" if v else "false"
        elif isinstance(v, (str, int, float)):
            out[str(k)] = str(v)
        else:
            raise ConfigError(f"{what}.{k} must be a string")
    return out


def _str_list(value: Any, what: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{what} must be a list of strings")
    return tuple(value)


def _optional_str(value: Any, what: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ConfigError(f"{what} must be a string")


def _bool(value: Any, what: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"{what} must be true or false")
    return value


def parse_install_crate(value: Any, task_name: str) -> InstallCrate:
    what = f"tasks.{task_name}.install_crate"
    if isinstance(value, str):
        return InstallCrate(crate_name=value, binary=value)
    spec = _table(value, what)
    unknown = set(spec) - INSTALL_FIELDS
    if unknown:
        raise ConfigError(f"Unknown fields in {what}: {', '.join(sorted(unknown))}")
    crate_name = _optional_str(spec.get("crate_name"), f"{what}.crate_name")
    if not crate_name:
        raise ConfigError(f"{what} requires crate_name")
    binary = _optional_str(spec.get("binary"), f"{what}.binary") or crate_name
    test_arg = _optional_str(spec.get("test_arg"), f"{what}.test_arg") or "--help"
    return InstallCrate(crate_name=crate_name, binary=binary, test_arg=test_arg)


def parse_task(name: str, record: Any, base_dir: Path) -> Task:
    what = f"tasks.{name}"
    rec = _table(record, what)
    unknown = set(rec) - TASK_FIELDS
    if unknown:
        raise ConfigError(f"Unknown fields in {what}: {', '.join(sorted(unknown))}")

    command = _optional_str(rec.get("command"), f"{what}.command")
    if command == "":
        raise ConfigError(f"{what}.command must not be empty")
    args = _str_list(rec.get("args"), f"{what}.args")
    if args and command is None:
        raise ConfigError(f"{what} has args but no command")
    install = rec.get("install_crate")
    cwd = _optional_str(rec.get("cwd"), f"{what}.cwd")
    return Task(
        name=name,
        command=command,
        args=args,
        dependencies=_str_list(rec.get("dependencies"), f"{what}.dependencies"),
        clear=_bool(rec.get("clear"), f"{what}.clear"),
        install_crate=parse_install_crate(install, name) if install is not None else None,
        description=_optional_str(rec.get("description"), f"{what}.description") or "",
        env=_env_values(rec.get("env"), f"{what}.env"),
        cwd=(base_dir / cwd) if cwd else None,
        ignore_errors=_bool(rec.get("ignore_errors"), f"{what}.ignore_errors"),
    )


def parse_tasks(doc: dict, base_dir: Path = Path(".")) -> TaskGraph:
    """Build a task graph from an already merged document."""
    tasks = _table(doc.get("tasks"), "tasks")
    config = _table(doc.get("config"), "config")
    unknown = set(config) - {"default_task"}
    if unknown:
        raise ConfigError(f"Unknown fields in config: {', '.join(sorted(unknown))}")
    run_config = RunConfig(
        base_dir=base_dir,
        default_task=_optional_str(config.get("default_task"), "config.default_task"),
        env=_env_values(doc.get("env"), "env"),
    )
    parsed = [parse_task(str(name), record, base_dir) for name, record in tasks.items()]
    return TaskGraph(parsed, run_config)


def load_tasks(path: str | Path | None = None) -> TaskGraph:
    """Load a task file, following ``extend`` chains, into a task graph."""
    p = Path(path) if path is not None else default_task_file()
    doc = _load_merged(p, ())
    graph = parse_tasks(doc, base_dir=p.resolve().parent)
    log.debug("Loaded %d tasks from %s", len(graph), p)
    return graph
