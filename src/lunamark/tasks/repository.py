"""Authoritative task persistence.

Every write re-reads the target file through the codec, applies the change
and writes the serialized result atomically. Missing tasks raise
:class:`NotFoundError`; filesystem failures raise :class:`PersistenceError`.
The optimistic layer in :mod:`lunamark.mutations` turns both into results.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from lunamark import log
from lunamark.errors import NotFoundError, PersistenceError
from lunamark.io_utils import atomic_write, ensure_dir, read_text
from lunamark.tasks.codec import generate_filename, serialize_task
from lunamark.tasks.loader import load_board, scan_for_task
from lunamark.tasks.model import (
    Board,
    ColumnConfig,
    CreateTaskInput,
    MoveTaskInput,
    RenumberInput,
    Task,
    TaskMetadata,
    UpdateTaskInput,
    normalize_date,
    today_iso,
)


def new_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:8]}"


class TaskRepository:
    """Reads and writes task files under one directory."""

    def __init__(self, tasks_dir: str | Path) -> None:
        self.tasks_dir = Path(tasks_dir)

    # ── reads ────────────────────────────────────────────────────

    async def get_board(self, columns: Sequence[ColumnConfig] | None = None) -> Board:
        return await load_board(self.tasks_dir, columns)

    def _require(self, task_id: str) -> Task:
        task = scan_for_task(str(self.tasks_dir), task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def _write(self, task: Task) -> None:
        try:
            atomic_write(task.file_path, serialize_task(task))
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write {task.file_path}: {exc}",
                {"task_id": task.id, "file_path": task.file_path},
            ) from exc

    # ── writes ───────────────────────────────────────────────────

    def _create_sync(self, data: CreateTaskInput) -> Task:
        try:
            ensure_dir(self.tasks_dir)
        except OSError as exc:
            raise PersistenceError(f"Cannot create {self.tasks_dir}: {exc}") from exc
        task_id = new_task_id()
        metadata = TaskMetadata(
            id=task_id,
            title=data.title,
            status=data.status,
            priority=data.priority,
            labels=list(data.labels),
            assignee=data.assignee,
            created=today_iso(),
            due=normalize_date(data.due),
            order=0,
        )
        file_path = self.tasks_dir / generate_filename(task_id, data.title)
        task = Task(id=task_id, file_path=str(file_path), metadata=metadata, content=data.content)
        self._write(task)
        log.debug(f"Created {task_id} at {file_path}")
        return task

    def _update_sync(self, data: UpdateTaskInput) -> Task:
        existing = self._require(data.id)
        updated = existing.with_metadata(**data.metadata_changes())
        content = data.content_change()
        if content is not None:
            updated = replace(updated, content=content)

        old_path = existing.file_path
        if data.title and data.title != existing.metadata.title:
            new_path = str(self.tasks_dir / generate_filename(data.id, data.title))
            if new_path != old_path:
                updated = replace(updated, file_path=new_path)

        if updated.file_path == old_path:
            self._write(updated)
            return updated

        # Rename first so the task never exists under two names.
        try:
            os.replace(old_path, updated.file_path)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to rename {old_path}: {exc}", {"task_id": data.id}
            ) from exc
        try:
            self._write(updated)
        except PersistenceError:
            try:
                os.replace(updated.file_path, old_path)
            except OSError as exc:
                log.warn(f"Could not move {updated.file_path} back to {old_path}: {exc}")
            raise
        log.debug(f"Renamed {old_path} -> {updated.file_path}")
        return updated

    def _delete_sync(self, task_id: str) -> str:
        existing = self._require(task_id)
        try:
            os.unlink(existing.file_path)
        except FileNotFoundError as exc:
            raise NotFoundError(task_id) from exc
        except OSError as exc:
            raise PersistenceError(
                f"Failed to delete {existing.file_path}: {exc}", {"task_id": task_id}
            ) from exc
        return task_id

    def _move_sync(self, data: MoveTaskInput) -> Task:
        existing = self._require(data.task_id)
        updated = existing.with_metadata(status=data.new_status, order=data.new_order)
        self._write(updated)
        return updated

    def _renumber_sync(self, data: RenumberInput) -> list[Task]:
        # Resolve every task first so a missing id fails before any write.
        tasks = [self._require(tid) for tid in data.task_ids]
        result: list[Task] = []
        changes: list[tuple[Task, str]] = []
        for index, task in enumerate(tasks):
            order = float((index + 1) * data.step)
            if task.metadata.status == data.status and task.metadata.order == order:
                result.append(task)
                continue
            updated = task.with_metadata(status=data.status, order=order)
            changes.append((updated, serialize_task(updated)))
            result.append(updated)

        try:
            originals = {task.file_path: read_text(task.file_path) for task, _ in changes}
        except OSError as exc:
            raise PersistenceError(f"Failed to read column before renumbering: {exc}") from exc

        committed: list[str] = []
        try:
            for task, text in changes:
                atomic_write(task.file_path, text)
                committed.append(task.file_path)
        except OSError as exc:
            self._revert(committed, originals)
            raise PersistenceError(
                f"Renumbering {data.status.value} failed after {len(committed)} writes: {exc}",
                {"status": data.status.value, "task_ids": list(data.task_ids)},
            ) from exc
        return result

    def _revert(self, paths: list[str], originals: dict[str, str]) -> None:
        for path in reversed(paths):
            try:
                atomic_write(path, originals[path])
            except OSError as exc:
                log.warn(f"Could not restore {path}: {exc}")

    async def create_task(self, data: CreateTaskInput) -> Task:
        return await asyncio.to_thread(self._create_sync, data)

    async def update_task(self, data: UpdateTaskInput) -> Task:
        return await asyncio.to_thread(self._update_sync, data)

    async def delete_task(self, task_id: str) -> str:
        return await asyncio.to_thread(self._delete_sync, task_id)

    async def move_task(self, data: MoveTaskInput) -> Task:
        return await asyncio.to_thread(self._move_sync, data)

    async def renumber_column(self, data: RenumberInput) -> list[Task]:
        return await asyncio.to_thread(self._renumber_sync, data)
