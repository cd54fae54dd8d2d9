# tests/test_config.py

from __future__ import annotations

import pytest

from taskrun.config import load_tasks, merge_task
from taskrun.core import InstallCrate
from taskrun.errors import ConfigError

from .conftest import EXAMPLES_DIR


def test_example_file_loads_all_task_kinds() -> None:
    graph = load_tasks(EXAMPLES_DIR / "leptos.toml")

    assert graph.names[:4] == [
        "make-target-site-dir",
        "install-cargo-leptos",
        "cargo-leptos-e2e",
        "build",
    ]
    assert graph.config.default_task == "build"

    build = graph["build"]
    assert build.kind == "command"
    assert build.clear is True
    assert build.argv == ["cargo", "leptos", "build", "--release", "-P"]
    assert build.dependencies == ("make-target-site-dir",)

    install = graph["install-cargo-leptos"]
    assert install.kind == "install"
    assert install.install_crate == InstallCrate(
        crate_name="cargo-leptos", binary="cargo-leptos", test_arg="--help"
    )
    assert install.argv == []

    assert graph["check"].kind == "group"


def test_install_crate_string_shorthand(task_file) -> None:
    path = task_file(
        """
        [tasks.fmt]
        install_crate = "rustfmt"
        """
    )
    crate = load_tasks(path)["fmt"].install_crate
    assert crate == InstallCrate(crate_name="rustfmt", binary="rustfmt", test_arg="--help")
    assert crate.test_argv == ["rustfmt", "--help"]
    assert crate.install_argv == ["cargo", "install", "rustfmt"]


def test_install_crate_binary_defaults_to_crate_name(task_file) -> None:
    path = task_file(
        """
        [tasks.nextest]
        install_crate = { crate_name = "cargo-nextest", test_arg = "--version" }
        """
    )
    crate = load_tasks(path)["nextest"].install_crate
    assert crate.binary == "cargo-nextest"
    assert crate.test_arg == "--version"


def test_yaml_task_file(task_file) -> None:
    path = task_file(
        """
        config:
          default_task: b
        env:
          MODE: release
          JOBS: 4
        tasks:
          a:
            command: echo
            args: [hello]
          b:
            command: echo
            dependencies: [a]
            env:
              VERBOSE: true
        """,
        name="tasks.yaml",
    )
    graph = load_tasks(path)
    assert graph.names == ["a", "b"]
    assert graph.config.env == {"MODE": "release", "JOBS": "4"}
    assert graph["b"].env == {"VERBOSE": "true"}
    assert graph.config.default_task == "b"


def test_empty_yaml_file_has_no_tasks(task_file) -> None:
    path = task_file("", name="tasks.yml")
    assert len(load_tasks(path)) == 0


def test_cwd_is_resolved_against_task_file_directory(task_file, tmp_path) -> None:
    path = task_file(
        """
        [tasks.a]
        command = "ls"
        cwd = "sub"
        """
    )
    graph = load_tasks(path)
    assert graph["a"].cwd == tmp_path.resolve() / "sub"
    assert graph.config.base_dir == tmp_path.resolve()


@pytest.mark.parametrize(
    "text, message",
    [
        (
            """
            [tasks.a]
            command = "true"
            dependencies = ["missing"]
            """,
            "unknown task: missing",
        ),
        (
            """
            [tasks.a]
            args = ["x"]
            """,
            "has args but no command",
        ),
        (
            """
            [tasks.a]
            install_crate = { binary = "x" }
            """,
            "requires crate_name",
        ),
        (
            """
            [tasks.a]
            command = "true"
            depends = ["b"]
            """,
            "Unknown fields in tasks.a: depends",
        ),
        (
            """
            [tasks.a]
            command = ["true"]
            """,
            "tasks.a.command must be a string",
        ),
        (
            """
            [tasks.a]
            command = "true"
            clear = "yes"
            """,
            "tasks.a.clear must be true or false",
        ),
        (
            """
            [tasks.a]
            command = "true"
            args = ["x", 1]
            """,
            "tasks.a.args must be a list of strings",
        ),
        (
            """
            [config]
            default_task = "nope"

            [tasks.a]
            command = "true"
            """,
            "Default task is not defined: nope",
        ),
        (
            """
            tasks = 3
            """,
            "tasks must be a table",
        ),
        (
            """
            [tasks.a]
            command = "true"
            [other]
            x = 1
            """,
            "Unknown top-level keys",
        ),
    ],
)
def test_invalid_task_files_raise_config_error(task_file, text, message) -> None:
    path = task_file(text)
    with pytest.raises(ConfigError, match=message):
        load_tasks(path)


def test_missing_file_raises_config_error(tmp_path) -> None:
    with pytest.raises(ConfigError, match="Task file not found"):
        load_tasks(tmp_path / "nope.toml")


def test_unparsable_toml_raises_config_error(task_file) -> None:
    path = task_file("[tasks.a\ncommand = ")
    with pytest.raises(ConfigError, match="Cannot parse"):
        load_tasks(path)


def test_extend_merges_fields_unless_cleared(task_file) -> None:
    task_file(
        """
        [config]
        default_task = "build"

        [env]
        A = "base"
        B = "base"

        [tasks.prepare]
        command = "mkdir"

        [tasks.build]
        command = "cargo"
        args = ["build"]
        dependencies = ["prepare"]
        env = { PROFILE = "debug", COLOR = "always" }

        [tasks.test]
        command = "cargo"
        args = ["test"]
        dependencies = ["prepare"]
        """,
        name="base.toml",
    )
    path = task_file(
        """
        extend = "base.toml"

        [env]
        B = "override"

        [tasks.build]
        args = ["build", "--release"]
        env = { PROFILE = "release" }

        [tasks.test]
        clear = true
        command = "cargo"
        args = ["nextest", "run"]
        """
    )
    graph = load_tasks(path)

    build = graph["build"]
    assert build.argv == ["cargo", "build", "--release"]
    assert build.dependencies == ("prepare",)
    assert build.env == {"PROFILE": "release", "COLOR": "always"}

    test = graph["test"]
    assert test.argv == ["cargo", "nextest", "run"]
    assert test.dependencies == ()

    assert graph.config.env == {"A": "base", "B": "override"}
    assert graph.config.default_task == "build"
    assert graph.names == ["prepare", "build", "test"]


def test_circular_extend_raises_config_error(task_file) -> None:
    task_file('extend = "b.toml"\n', name="a.toml")
    path = task_file('extend = "a.toml"\n', name="b.toml")
    with pytest.raises(ConfigError, match="Circular extend"):
        load_tasks(path)


def test_merge_task_replaces_lists_and_keeps_base_untouched() -> None:
    base = {"command": "cargo", "args": ["a", "b"], "env": {"X": "1"}}
    merged = merge_task(base, {"args": ["c"], "env": {"Y": "2"}})
    assert merged == {"command": "cargo", "args": ["c"], "env": {"X": "1", "Y": "2"}}
    assert base == {"command": "cargo", "args": ["a", "b"], "env": {"X": "1"}}


@pytest.mark.parametrize(
    "name, content",
    [
        ("tasks.toml", b'[tasks.a]\ncommand = "\xff"\n'),
        ("tasks.yaml", b"tasks:\n  a:\n    command: \xff\n"),
    ],
)
def test_invalid_utf8_raises_config_error(tmp_path, name, content) -> None:
    path = tmp_path / name
    path.write_bytes(content)
    with pytest.raises(ConfigError, match="Cannot parse"):
        load_tasks(path)


def test_inherited_cwd_resolves_against_loaded_file(tmp_path) -> None:
    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "base.toml").write_text(
        '[tasks.gen]\ncommand = "gen"\ncwd = "out"\n', encoding="utf-8"
    )
    path = tmp_path / "tasks.toml"
    path.write_text('extend = "shared/base.toml"\n', encoding="utf-8")

    graph = load_tasks(path)
    assert graph["gen"].cwd == tmp_path.resolve() / "out"
