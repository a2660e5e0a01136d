"""Board loader: task directory -> grouped, ordered :class:`Board`."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Sequence

from lunamark import log
from lunamark.io_utils import ensure_dir, list_task_files, read_text
from lunamark.tasks.codec import parse_task
from lunamark.tasks.model import (
    DEFAULT_COLUMNS,
    Board,
    Column,
    ColumnConfig,
    Task,
    TaskStatus,
    sort_by_order,
)


def _read_tasks(tasks_dir: Path) -> list[Task]:
    """Parse every task file, skipping (and warning about) the bad ones."""
    tasks: list[Task] = []
    for path in list_task_files(tasks_dir):
        try:
            raw = read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            log.warn(f"Failed to read {path}: {exc}")
            continue
        result = parse_task(str(path), raw)
        if result.ok:
            tasks.append(result.value)
        else:
            log.warn(result.error.message)
    return tasks


def group_tasks_by_status(tasks: Sequence[Task]) -> dict[TaskStatus, list[Task]]:
    grouped: dict[TaskStatus, list[Task]] = {}
    for task in tasks:
        grouped.setdefault(task.metadata.status, []).append(task)
    return grouped


def build_board(
    tasks: Sequence[Task],
    tasks_dir: str,
    columns: Sequence[ColumnConfig] = DEFAULT_COLUMNS,
) -> Board:
    """Group *tasks* into *columns*, each sorted ascending by ``order``."""
    grouped = group_tasks_by_status(tasks)
    configured = {config.id for config in columns}
    for status, orphans in grouped.items():
        if status not in configured:
            ids = ", ".join(t.id for t in orphans)
            log.warn(f"No column for status '{status.value}'; not shown: {ids}")
    return Board(
        columns=tuple(
            Column.from_config(config, sort_by_order(grouped.get(config.id, [])))
            for config in columns
        ),
        tasks_dir=tasks_dir,
        last_updated=datetime.now().isoformat(),
    )


def _load_board_sync(tasks_dir: str, columns: Sequence[ColumnConfig]) -> Board:
    root = ensure_dir(tasks_dir)
    return build_board(_read_tasks(root), tasks_dir, columns)


async def load_board(
    tasks_dir: str | Path,
    columns: Sequence[ColumnConfig] | None = None,
) -> Board:
    """Scan *tasks_dir* (creating it if missing) and assemble the board.

    A file that fails to parse is logged and excluded; it never aborts the
    load.
    """
    return await asyncio.to_thread(
        _load_board_sync, str(tasks_dir), tuple(columns or DEFAULT_COLUMNS)
    )


def scan_for_task(tasks_dir: str, task_id: str) -> Task | None:
    root = Path(tasks_dir)
    if not root.is_dir():
        return None
    for path in list_task_files(root):
        try:
            raw = read_text(path)
        except (OSError, UnicodeDecodeError):
            continue
        result = parse_task(str(path), raw)
        if result.ok and result.value.id == task_id:
            return result.value
    return None


async def load_task_by_id(tasks_dir: str | Path, task_id: str) -> Task | None:
    """Linear scan for *task_id*; ``None`` when no valid file carries it."""
    return await asyncio.to_thread(scan_for_task, str(tasks_dir), task_id)


async def find_task_file_path(tasks_dir: str | Path, task_id: str) -> str | None:
    task = await load_task_by_id(tasks_dir, task_id)
    return task.file_path if task else None
