"""Shared fixtures for lunamark tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use lunamark.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from lunamark import log
from lunamark.io_utils import write_text
from lunamark.tasks.codec import generate_filename, serialize_task
from lunamark.tasks.model import Task, TaskMetadata


def _make_task(
    id: str,
    title: str = "",
    status: str = "todo",
    order: float = 0,
    priority: str = "medium",
    labels: list[str] | None = None,
    assignee: str | None = None,
    due: str | None = None,
    content: str = "",
    file_path: str = "",
) -> Task:
    metadata = TaskMetadata(
        id=id,
        title=title or f"Task {id}",
        status=status,
        priority=priority,
        labels=labels or [],
        assignee=assignee,
        created="2024-01-15",
        due=due,
        order=order,
    )
    return Task(id=id, file_path=file_path, metadata=metadata, content=content)


@pytest.fixture(autouse=True)
def _quiet_log():
    """Reset verbosity between tests (the CLI toggles it globally).

    Consoles get a wide fixed width so long tmp paths are never wrapped
    mid-assertion.
    """
    log.set_verbose(False)
    log.console.width = 400
    log._err_console.width = 400
    yield
    log.set_verbose(False)


@pytest.fixture
def tasks_dir(tmp_path: Path) -> Path:
    d = tmp_path / "tasks"
    d.mkdir()
    return d


@pytest.fixture
def make_task() -> Callable[..., Task]:
    return _make_task


@pytest.fixture
def write_task_file(tasks_dir: Path) -> Callable[..., Path]:
    """Write a task to *tasks_dir* the way the repository would.

    ``write_task_file("task-a", status="todo", order=10)`` serializes a task;
    ``write_task_file(raw="...", name="x.md")`` writes the text verbatim.
    """

    def _write(id: str = "", *, raw: str | None = None, name: str = "", **fields) -> Path:
        if raw is not None:
            path = tasks_dir / (name or f"{id or 'raw'}.md")
            write_text(path, raw)
            return path
        task = _make_task(id, **fields)
        path = tasks_dir / (name or generate_filename(id, task.metadata.title))
        write_text(path, serialize_task(task))
        return path

    return _write
