"""Tests for lunamark.config: defaults, discovery and override order."""

from __future__ import annotations

from pathlib import Path

import pytest

from lunamark.config import (
    TASKS_DIR_ENV,
    Config,
    find_config_file,
    get_columns,
    get_tasks_dir,
    load_config_file,
    resolve_config,
)
from lunamark.io_utils import write_text
from lunamark.tasks.model import DEFAULT_COLUMNS, ColumnConfig, TaskStatus


@pytest.fixture(autouse=True)
def _no_env(monkeypatch):
    monkeypatch.delenv(TASKS_DIR_ENV, raising=False)


def test_defaults():
    cfg = Config()
    assert cfg.tasks_dir == "./tasks"
    assert cfg.watch is True
    assert cfg.order_step == 10
    assert cfg.watch_debounce == 0.2
    assert get_columns(cfg) == DEFAULT_COLUMNS


def test_columns_from_raw_mappings():
    cfg = Config(columns=[{"id": "todo", "title": "Backlog", "color": "red"}, {"id": "done"}])
    assert cfg.columns == [
        ColumnConfig(TaskStatus.TODO, "Backlog", color="red"),
        ColumnConfig(TaskStatus.DONE, "done"),
    ]


def test_rejects_non_positive_step():
    with pytest.raises(ValueError):
        Config(order_step=0)


class TestDiscovery:
    def test_finds_file_in_parent(self, tmp_path):
        write_text(tmp_path / "lunamark.yaml", "tasksDir: ./board\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == (tmp_path / "lunamark.yaml").resolve()

    def test_respects_max_depth(self, tmp_path):
        write_text(tmp_path / "lunamark.yml", "")
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert find_config_file(nested, max_depth=2) is None

    def test_hidden_name(self, tmp_path):
        write_text(tmp_path / ".lunamark.yaml", "")
        assert find_config_file(tmp_path) == (tmp_path / ".lunamark.yaml").resolve()


class TestLoadConfigFile:
    def test_broken_yaml_is_not_fatal(self, tmp_path, capsys):
        path = tmp_path / "lunamark.yaml"
        write_text(path, "tasksDir: [oops\n")
        assert load_config_file(path) == {}
        assert "Failed to load config" in capsys.readouterr().err

    def test_non_mapping_ignored(self, tmp_path):
        path = tmp_path / "lunamark.yaml"
        write_text(path, "- a\n- b\n")
        assert load_config_file(path) == {}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "lunamark.yaml"
        write_text(path, "")
        assert load_config_file(path) == {}


class TestResolveConfig:
    def test_file_values_and_relative_dir(self, tmp_path):
        write_text(
            tmp_path / "lunamark.yaml",
            "tasksDir: ./board\nwatch: false\ncolumns:\n  - id: todo\n    title: Backlog\n",
        )
        cfg = resolve_config(tmp_path)
        assert cfg.watch is False
        assert [c.title for c in get_columns(cfg)] == ["Backlog"]
        assert get_tasks_dir(cfg) == (tmp_path / "board").resolve()

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        write_text(tmp_path / "lunamark.yaml", "tasks_dir: ./board\n")
        monkeypatch.setenv(TASKS_DIR_ENV, "/srv/tasks")
        assert resolve_config(tmp_path).tasks_dir == "/srv/tasks"

    def test_explicit_overrides_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(TASKS_DIR_ENV, "/srv/tasks")
        cfg = resolve_config(tmp_path, tasks_dir="/explicit", verbose=None)
        assert cfg.tasks_dir == "/explicit"
        assert cfg.verbose is False

    def test_no_file_uses_start_dir(self, tmp_path):
        cfg = resolve_config(tmp_path)
        assert get_tasks_dir(cfg) == (tmp_path / "tasks").resolve()

    def test_invalid_columns_fall_back(self, tmp_path, capsys):
        write_text(tmp_path / "lunamark.yaml", "tasksDir: ./b\ncolumns:\n  - id: blocked\n")
        cfg = resolve_config(tmp_path)
        assert cfg.columns is None
        assert Path(cfg.tasks_dir) == Path("./b")
        assert "Invalid configuration" in capsys.readouterr().err
