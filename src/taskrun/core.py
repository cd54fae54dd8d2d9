from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from .errors import ConfigError, CycleError, TaskNotFoundError


@dataclass(frozen=True)
class InstallCrate:
    crate_name: str
    binary: str
    test_arg: str = "--help"

    @property
    def test_argv(self) -> list[str]:
        return [self.binary, self.test_arg]

    @property
    def install_argv(self) -> list[str]:
        return ["cargo", "install", self.crate_name]


@dataclass(frozen=True)
class Task:
    name: str
    command: str | None = None
    args: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    clear: bool = False
    install_crate: InstallCrate | None = None
    description: str = ""
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None
    ignore_errors: bool = False

    @property
    def argv(self) -> list[str]:
        if self.command is None:
            return []
        return [self.command, *self.args]

    @property
    def kind(self) -> str:
        if self.install_crate is not None:
            return "install"
        if self.command is not None:
            return "command"
        return "group"


@dataclass(frozen=True)
class RunConfig:
    """Settings that apply to every task of a loaded task file."""

    base_dir: Path = Path(".")
    default_task: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)


class TaskGraph:
    """Immutable arena of tasks with index-based dependency edges.

    Tasks keep their declaration order; ``edges[i]`` holds the indices of the
    dependencies of ``tasks[i]`` in the order they were declared.
    """

    def __init__(self, tasks: Iterable[Task], config: RunConfig | None = None):
        self.tasks: tuple[Task, ...] = tuple(tasks)
        self.config = config or RunConfig()
        self.index: dict[str, int] = {}
        for i, t in enumerate(self.tasks):
            if t.name in self.index:
                raise ConfigError(f"Duplicate task: {t.name}")
            self.index[t.name] = i
        edges: list[tuple[int, ...]] = []
        for t in self.tasks:
            deps = []
            for dep in t.dependencies:
                if dep not in self.index:
                    raise ConfigError(
                        f"Task {t.name} depends on unknown task: {dep}"
                    )
                deps.append(self.index[dep])
            edges.append(tuple(deps))
        self.edges: tuple[tuple[int, ...], ...] = tuple(edges)
        if self.config.default_task and self.config.default_task not in self.index:
            raise ConfigError(
                f"Default task is not defined: {self.config.default_task}"
            )

    def __contains__(self, name: object) -> bool:
        return name in self.index

    def __len__(self) -> int:
        return len(self.tasks)

    def __getitem__(self, name: str) -> Task:
        try:
            return self.tasks[self.index[name]]
        except KeyError:
            raise TaskNotFoundError(name) from None

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.tasks]


_VISITING = 1
_VISITED = 2


def resolve_order(graph: TaskGraph, target: str) -> tuple[str, ...]:
    """Return the tasks needed to run ``target``, dependencies first.

    Depth-first post-order over the dependency edges, following each task's
    dependency list in declaration order. A task reached again while still on
    the traversal stack raises :class:`CycleError` naming the cycle.
    """
    if target not in graph.index:
        raise TaskNotFoundError(target)

    marks = [0] * len(graph.tasks)
    ordered: list[int] = []
    path: list[int] = []
    # Explicit stack of (node, next edge position) so deep chains do not hit
    # the recursion limit.
    root = graph.index[target]
    stack: list[list[int]] = [[root, 0]]
    marks[root] = _VISITING
    path.append(root)
    while stack:
        frame = stack[-1]
        node, pos = frame
        deps = graph.edges[node]
        if pos < len(deps):
            frame[1] += 1
            dep = deps[pos]
            if marks[dep] == _VISITED:
                continue
            if marks[dep] == _VISITING:
                start = path.index(dep)
                cycle = [graph.tasks[i].name for i in path[start:]]
                cycle.append(graph.tasks[dep].name)
                raise CycleError(cycle)
            marks[dep] = _VISITING
            path.append(dep)
            stack.append([dep, 0])
        else:
            stack.pop()
            path.pop()
            marks[node] = _VISITED
            ordered.append(node)
    return tuple(graph.tasks[i].name for i in ordered)
