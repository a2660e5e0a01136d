"""Configuration defaults, config-file discovery and env overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from lunamark import log
from lunamark.io_utils import read_text
from lunamark.tasks.model import DEFAULT_COLUMNS, ColumnConfig, TaskStatus
from lunamark.tasks.ordering import ORDER_STEP

CONFIG_FILE_NAMES = ("lunamark.yaml", "lunamark.yml", ".lunamark.yaml")

DEFAULT_TASKS_DIR = "./tasks"

TASKS_DIR_ENV = "LUNAMARK_TASKS_DIR"

MAX_SEARCH_DEPTH = 10


@dataclass
class Config:
    """Runtime configuration for the board."""

    tasks_dir: str = DEFAULT_TASKS_DIR
    watch: bool = True
    columns: list[ColumnConfig] | None = None
    order_step: float = ORDER_STEP
    watch_debounce: float = 0.2

    # Misc
    verbose: bool = False

    # Directory the config file was found in; relative tasks_dir resolves here.
    config_dir: str = field(default_factory=lambda: str(Path.cwd()))

    def __post_init__(self) -> None:
        if self.columns is not None:
            self.columns = [_column_from_raw(c) for c in self.columns]
        if self.order_step <= 0:
            raise ValueError(f"order_step must be positive, got {self.order_step}")


def _column_from_raw(raw: Any) -> ColumnConfig:
    if isinstance(raw, ColumnConfig):
        return raw
    if not isinstance(raw, dict) or "id" not in raw:
        raise ValueError(f"Column entry needs an 'id': {raw!r}")
    status = TaskStatus(raw["id"])
    return ColumnConfig(
        id=status,
        title=str(raw.get("title") or status.value),
        color=raw.get("color"),
        limit=raw.get("limit"),
    )


def find_config_file(start_dir: str | Path | None = None, max_depth: int = MAX_SEARCH_DEPTH) -> Path | None:
    """Walk up from *start_dir* looking for a lunamark config file."""
    current = Path(start_dir or Path.cwd()).resolve()
    for _ in range(max_depth):
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current.parent == current:
            break
        current = current.parent
    return None


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Parse a config file; a broken one is reported and treated as empty."""
    try:
        data = yaml.safe_load(read_text(path))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        log.warn(f"Failed to load config {path}: {exc}")
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        log.warn(f"Ignoring config {path}: expected a mapping")
        return {}
    return data


def resolve_config(start_dir: str | Path | None = None, **overrides: Any) -> Config:
    """Defaults, then the config file, then ``LUNAMARK_TASKS_DIR``, then *overrides*.

    ``None`` values in *overrides* are ignored so CLI options can be passed
    straight through.
    """
    known = {f.name for f in fields(Config)}
    values: dict[str, Any] = {}

    path = find_config_file(start_dir)
    if path is not None:
        raw = load_config_file(path)
        for key, value in raw.items():
            name = key.replace("-", "_")
            if name == "tasks_dir" or name == "tasksDir":
                values["tasks_dir"] = str(value)
            elif name in known and name != "config_dir":
                values[name] = value
            else:
                log.debug(f"Unknown config key '{key}' in {path}")
        values["config_dir"] = str(path.parent)
        log.debug(f"Loaded config from {path}")
    elif start_dir is not None:
        values["config_dir"] = str(Path(start_dir).resolve())

    env_dir = os.environ.get(TASKS_DIR_ENV)
    if env_dir:
        values["tasks_dir"] = env_dir

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Config(**values)
    except (TypeError, ValueError) as exc:
        log.warn(f"Invalid configuration ({exc}); using defaults")
        fallback = {k: values[k] for k in ("tasks_dir", "config_dir", "verbose") if k in values}
        return Config(**fallback)


def get_tasks_dir(cfg: Config) -> Path:
    tasks_dir = Path(cfg.tasks_dir).expanduser()
    if not tasks_dir.is_absolute():
        tasks_dir = Path(cfg.config_dir) / tasks_dir
    return tasks_dir.resolve()


def get_columns(cfg: Config) -> tuple[ColumnConfig, ...]:
    return tuple(cfg.columns) if cfg.columns else DEFAULT_COLUMNS
