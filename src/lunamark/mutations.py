"""Optimistic mutations over the cached board.

Every mutation runs the same cycle:

1. **begin**: cancel the in-flight board read and snapshot the cached board
2. **apply**: cache ``apply_locally(snapshot, input)`` immediately
3. **commit**: await the authoritative write; on success mark the board
   stale so the next read re-validates against the files
4. **rollback**: on failure put the snapshot back verbatim and return the
   error

Predictions are pure functions of ``(board, input)``; they build new boards
and never touch the snapshot.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

import pydantic

from lunamark import log
from lunamark.cache import BoardCache
from lunamark.errors import LunamarkError, PersistenceError, Result, ValidationError
from lunamark.tasks.model import (
    Board,
    ColumnConfig,
    CreateTaskInput,
    MoveTaskInput,
    RenumberInput,
    Task,
    TaskMetadata,
    UpdateTaskInput,
    sort_by_order,
    today_iso,
)
from lunamark.tasks.repository import TaskRepository

I = TypeVar("I")
R = TypeVar("R")

BOARD_KEY = "board"

TEMP_ID_PREFIX = "temp-"


def generate_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4()}"


class OptimisticMutation(Generic[I, R]):
    """One remote write paired with its local prediction."""

    def __init__(
        self,
        cache: BoardCache,
        remote: Callable[[I], Awaitable[R]],
        apply_locally: Callable[[Board, I], Board],
        *,
        key: str = BOARD_KEY,
        name: str = "mutation",
    ) -> None:
        self.cache = cache
        self.remote = remote
        self.apply_locally = apply_locally
        self.key = key
        self.name = name

    async def run(self, data: I) -> Result[R]:
        await self.cache.cancel_in_flight(self.key)
        snapshot: Board | None = self.cache.get(self.key)

        if snapshot is not None:
            self.cache.set(self.key, self.apply_locally(snapshot, data))
            log.debug(f"{self.name}: prediction applied")

        try:
            value = await self.remote(data)
        except asyncio.CancelledError:
            self._rollback(snapshot)
            raise
        except Exception as exc:
            self._rollback(snapshot)
            error = exc if isinstance(exc, LunamarkError) else PersistenceError(
                f"{self.name} failed: {exc}"
            )
            if error is not exc:
                error.__cause__ = exc
            log.warn(f"{self.name} rolled back: {error.message}")
            return Result.failure(error)

        self.cache.invalidate(self.key)
        log.debug(f"{self.name}: committed")
        return Result.success(value)

    def _rollback(self, snapshot: Board | None) -> None:
        if snapshot is not None:
            self.cache.set(self.key, snapshot)
        self.cache.invalidate(self.key)


# ── Local predictions ────────────────────────────────────────────────


def _replace_task(board: Board, task_id: str, fn: Callable[[Task], Task]) -> Board:
    return board.with_columns(
        [
            col.with_tasks([fn(t) if t.id == task_id else t for t in col.tasks])
            if any(t.id == task_id for t in col.tasks)
            else col
            for col in board.columns
        ]
    )


def build_optimistic_task(data: CreateTaskInput, temp_id: str | None = None) -> Task:
    task_id = temp_id or generate_temp_id()
    return Task(
        id=task_id,
        file_path="",
        metadata=TaskMetadata(
            id=task_id,
            title=data.title,
            status=data.status,
            priority=data.priority,
            labels=list(data.labels),
            assignee=data.assignee,
            created=today_iso(),
            due=data.due,
            order=0,
        ),
        content=data.content,
    )


def apply_create(board: Board, data: CreateTaskInput) -> Board:
    """Prepend a placeholder task (temporary id) to its target column."""
    task = build_optimistic_task(data)
    return board.with_columns(
        [
            col.with_tasks((task, *col.tasks)) if col.id == data.status else col
            for col in board.columns
        ]
    )


def apply_update(board: Board, data: UpdateTaskInput) -> Board:
    """Merge the provided fields into the matching task.

    A status change moves the task to the end of its new column's sort.
    """
    current = board.find_task(data.id)
    if current is None:
        return board
    updated = current.with_metadata(**data.metadata_changes())
    content = data.content_change()
    if content is not None:
        updated = replace(updated, content=content)
    if updated.metadata.status == current.metadata.status:
        return _replace_task(board, data.id, lambda _t: updated)
    return _place(board, updated)


def apply_delete(board: Board, task_id: str) -> Board:
    return board.with_columns(
        [col.with_tasks([t for t in col.tasks if t.id != task_id]) for col in board.columns]
    )


def _place(board: Board, task: Task) -> Board:
    """Remove *task* from every column and insert it, sorted, into its own."""
    columns = []
    for col in board.columns:
        remaining = [t for t in col.tasks if t.id != task.id]
        if col.id == task.metadata.status:
            remaining = sort_by_order([*remaining, task])
        columns.append(col.with_tasks(remaining))
    return board.with_columns(columns)


def apply_move(board: Board, data: MoveTaskInput) -> Board:
    task = board.find_task(data.task_id)
    if task is None:
        return board
    return _place(board, task.with_metadata(status=data.new_status, order=data.new_order))


def apply_renumber(board: Board, data: RenumberInput) -> Board:
    """Move every listed task into ``data.status`` with evenly spaced keys."""
    listed = set(data.task_ids)
    renumbered: list[Task] = []
    for index, task_id in enumerate(data.task_ids):
        task = board.find_task(task_id)
        if task is not None:
            renumbered.append(
                task.with_metadata(status=data.status, order=float((index + 1) * data.step))
            )
    columns = []
    for col in board.columns:
        kept = [t for t in col.tasks if t.id not in listed]
        if col.id == data.status:
            kept = sort_by_order([*kept, *renumbered])
        columns.append(col.with_tasks(kept))
    return board.with_columns(columns)


# ── Entry points ─────────────────────────────────────────────────────


def _validate(model: type[pydantic.BaseModel], data: Any) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        fields = [".".join(str(p) for p in issue.get("loc", ())) for issue in exc.errors()]
        raise ValidationError(f"Invalid {model.__name__}: {exc.error_count()} error(s)", fields) from exc


class BoardMutations:
    """create / update / delete / move / renumber, each optimistic.

    Every entry point returns a :class:`Result`; validation failures are
    reported without touching the cache.
    """

    def __init__(
        self,
        cache: BoardCache,
        repository: TaskRepository,
        *,
        key: str = BOARD_KEY,
        columns: Sequence[ColumnConfig] | None = None,
    ) -> None:
        self.cache = cache
        self.repository = repository
        self.key = key
        self.columns = tuple(columns) if columns else None
        self._create = OptimisticMutation(
            cache, repository.create_task, apply_create, key=key, name="create"
        )
        self._update = OptimisticMutation(
            cache, repository.update_task, apply_update, key=key, name="update"
        )
        self._delete = OptimisticMutation(
            cache, repository.delete_task, apply_delete, key=key, name="delete"
        )
        self._move = OptimisticMutation(
            cache, repository.move_task, apply_move, key=key, name="move"
        )
        self._renumber = OptimisticMutation(
            cache, repository.renumber_column, apply_renumber, key=key, name="renumber"
        )

    async def _load(self) -> Board:
        return await self.repository.get_board(self.columns)

    async def get_board(self) -> Board:
        """Cached board, reloaded from disk when stale."""
        return await self.cache.ensure(self.key, self._load)

    def peek(self) -> Board | None:
        return self.cache.get(self.key)

    async def create(self, data: CreateTaskInput | dict) -> Result[Task]:
        try:
            parsed = _validate(CreateTaskInput, data)
        except ValidationError as exc:
            return Result.failure(exc)
        return await self._create.run(parsed)

    async def update(self, data: UpdateTaskInput | dict) -> Result[Task]:
        try:
            parsed = _validate(UpdateTaskInput, data)
        except ValidationError as exc:
            return Result.failure(exc)
        return await self._update.run(parsed)

    async def delete(self, task_id: str) -> Result[str]:
        if not task_id:
            return Result.failure(ValidationError("task_id is required", ["task_id"]))
        return await self._delete.run(task_id)

    async def move(self, data: MoveTaskInput | dict) -> Result[Task]:
        try:
            parsed = _validate(MoveTaskInput, data)
        except ValidationError as exc:
            return Result.failure(exc)
        return await self._move.run(parsed)

    async def renumber(self, data: RenumberInput | dict) -> Result[list[Task]]:
        try:
            parsed = _validate(RenumberInput, data)
        except ValidationError as exc:
            return Result.failure(exc)
        return await self._renumber.run(parsed)
