"""CLI tests: every command runs in-process through click's CliRunner."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from lunamark import log
from lunamark.cli import main
from lunamark.config import TASKS_DIR_ENV
from lunamark.io_utils import list_task_files, read_text, write_text
from lunamark.tasks.codec import parse_task


@pytest.fixture(autouse=True)
def _no_env(monkeypatch):
    monkeypatch.delenv(TASKS_DIR_ENV, raising=False)


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    return CliRunner()


def _order_of(tasks_dir, task_id):
    for path in list_task_files(tasks_dir):
        task = parse_task(str(path), read_text(path)).value
        if task and task.id == task_id:
            return task.metadata.status.value, task.metadata.order
    return None


# ── Main entry and help ────────────────────────────────────────────────


class TestCliHelpAndVersion:
    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "Lunamark" in r.output
        for command in ("init", "list", "move"):
            assert command in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert "lunamark" in r.output.lower()
        assert "0.4.0" in r.output


# ── init ───────────────────────────────────────────────────────────────


class TestInit:
    def test_creates_sample_tasks(self, cli_runner, tmp_path):
        target = tmp_path / "tasks"
        r = cli_runner.invoke(main, ["init", "--dir", str(target)])

        assert r.exit_code == 0, r.output
        names = sorted(p.name for p in list_task_files(target))
        assert names == [
            "task-create-your-first.md",
            "task-explore-features.md",
            "task-welcome-to-lunamark.md",
        ]
        assert _order_of(target, "task-welcome") == ("done", 10)
        assert _order_of(target, "task-first") == ("todo", 20)
        assert _order_of(target, "task-explore") == ("in-progress", 30)

    def test_refuses_to_overwrite(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-mine", status="todo")
        r = cli_runner.invoke(main, ["init", "--dir", str(tasks_dir)])
        assert r.exit_code == 1
        assert [p.name for p in list_task_files(tasks_dir)] == ["task-mine-task-task-mine.md"]

    def test_force(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-mine", status="todo")
        r = cli_runner.invoke(main, ["init", "--dir", str(tasks_dir), "--force"])
        assert r.exit_code == 0
        assert len(list_task_files(tasks_dir)) == 4


# ── list ───────────────────────────────────────────────────────────────


class TestList:
    def test_lists_columns(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", title="Alpha", status="todo", order=10)
        write_task_file("task-b", title="Beta", status="done", order=10)

        r = cli_runner.invoke(main, ["list", "--dir", str(tasks_dir)])

        assert r.exit_code == 0, r.output
        assert "To Do (1)" in r.output
        assert "Done (1)" in r.output
        assert "Alpha" in r.output
        assert "Total: 2 tasks | Done: 1" in r.output

    def test_status_filter(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", title="Alpha", status="todo")
        write_task_file("task-b", title="Beta", status="done")

        r = cli_runner.invoke(main, ["list", "--dir", str(tasks_dir), "--status", "done"])

        assert "Beta" in r.output
        assert "Alpha" not in r.output

    def test_json_with_filters(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", title="Alpha", status="todo", labels=["bug"], priority="high")
        write_task_file("task-b", title="Beta", status="todo", labels=["bug"])
        write_task_file("task-c", title="Gamma", status="todo")

        r = cli_runner.invoke(
            main,
            ["list", "--dir", str(tasks_dir), "--json", "--label", "bug", "--priority", "high"],
        )

        assert r.exit_code == 0, r.output
        payload = json.loads(r.output)
        assert [t["id"] for t in payload] == ["task-a"]
        assert payload[0]["status"] == "todo"

    def test_missing_directory(self, cli_runner, tmp_path):
        r = cli_runner.invoke(main, ["list", "--dir", str(tmp_path / "nope")])
        assert r.exit_code == 1

    def test_invalid_status_choice(self, cli_runner, tasks_dir):
        r = cli_runner.invoke(main, ["list", "--dir", str(tasks_dir), "--status", "blocked"])
        assert r.exit_code == 2


# ── move ───────────────────────────────────────────────────────────────


class TestMove:
    def test_move_to_end_of_column(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", status="todo", order=10)
        write_task_file("task-b", status="done", order=10)

        r = cli_runner.invoke(main, ["move", "task-a", "done", "--dir", str(tasks_dir)])

        assert r.exit_code == 0, r.output
        assert "Moved task-a to done" in r.output
        assert _order_of(tasks_dir, "task-a") == ("done", 20)

    def test_move_to_position(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", status="todo", order=10)
        write_task_file("task-b", status="todo", order=20)
        write_task_file("task-c", status="todo", order=30)

        r = cli_runner.invoke(
            main, ["move", "task-c", "todo", "--position", "1", "--dir", str(tasks_dir)]
        )

        assert r.exit_code == 0, r.output
        assert _order_of(tasks_dir, "task-c") == ("todo", 15)

    def test_move_renumbers_when_exhausted(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", status="todo", order=1.0)
        write_task_file("task-b", status="todo", order=1.0000000001)
        write_task_file("task-x", status="done", order=10)

        r = cli_runner.invoke(
            main, ["move", "task-x", "todo", "-p", "1", "--dir", str(tasks_dir)]
        )

        assert r.exit_code == 0, r.output
        assert _order_of(tasks_dir, "task-a") == ("todo", 10)
        assert _order_of(tasks_dir, "task-x") == ("todo", 20)
        assert _order_of(tasks_dir, "task-b") == ("todo", 30)

    def test_unknown_task(self, cli_runner, tasks_dir):
        r = cli_runner.invoke(main, ["move", "task-zzz", "done", "--dir", str(tasks_dir)])
        assert r.exit_code == 1

    def test_verbose_flag(self, cli_runner, tasks_dir, write_task_file):
        write_task_file("task-a", status="todo", order=10)
        r = cli_runner.invoke(main, ["-v", "move", "task-a", "review", "--dir", str(tasks_dir)])
        assert r.exit_code == 0, r.output
        assert _order_of(tasks_dir, "task-a") == ("review", 10)

    def test_config_file_turns_on_verbose(self, cli_runner, tmp_path, monkeypatch):
        write_text(tmp_path / "lunamark.yaml", "verbose: true\n")
        monkeypatch.chdir(tmp_path)
        r = cli_runner.invoke(main, ["init"])
        assert r.exit_code == 0, r.output
        assert log._verbose is True
