"""Drag-to-reorder controller for the board.

The controller keeps a working copy of the layout (column id -> task ids)
while a drag is in progress::

    ctl = DragController(mutations)
    ctl.drag_start(DragStartEvent(DragSource("task-a")))
    ctl.drag_over(DragOverEvent(DragSource("task-a"), DropTarget("task-b")))
    outcome = await ctl.drag_end(DragEndEvent(DragSource("task-a")))

``drag_over`` may fire many times per gesture; it only rewrites the working
copy (latest wins). Nothing is written until ``drag_end``, which computes
the dropped task's new ``order`` from its neighbours and issues exactly one
optimistic mutation: a move, or a column renumber when the gap between the
neighbours is exhausted. Column drags are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Mapping

from lunamark import log
from lunamark.cache import Subscribers
from lunamark.errors import Result
from lunamark.mutations import BoardMutations
from lunamark.tasks.model import Board, Column, MoveTaskInput, RenumberInput, Task, TaskStatus
from lunamark.tasks.ordering import ORDER_STEP, resolve_insert_order

Items = dict[str, list[str]]

ITEM = "item"
COLUMN = "column"


@dataclass(frozen=True)
class DragSource:
    id: str
    kind: str = ITEM


@dataclass(frozen=True)
class DropTarget:
    """What the pointer is over.

    ``placement`` is ``"before"`` / ``"after"`` the target task, or ``None``
    to pick the way a sortable list does: a task dragged down its own column
    lands after the target, anything else lands before it. The controller
    decides that against the layout at drag start, so hovering the same
    target twice does not flip the task back. Column targets append to the
    end of the column.
    """

    id: str
    kind: str = ITEM
    placement: str | None = None


@dataclass(frozen=True)
class DragStartEvent:
    source: DragSource | None


@dataclass(frozen=True)
class DragOverEvent:
    source: DragSource | None
    target: DropTarget | None


@dataclass(frozen=True)
class DragEndEvent:
    source: DragSource | None
    target: DropTarget | None = None
    canceled: bool = False


class DragResult(str, Enum):
    MOVED = "moved"
    RENUMBERED = "renumbered"
    UNCHANGED = "unchanged"
    CANCELED = "canceled"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class DragOutcome:
    status: DragResult
    move: MoveTaskInput | None = None
    result: Result | None = None
    renumbered: dict[str, float] = field(default_factory=dict)

    @property
    def moved(self) -> bool:
        return self.status in (DragResult.MOVED, DragResult.RENUMBERED)


# ── Layout helpers ───────────────────────────────────────────────────


def build_items_from_board(board: Board | None) -> Items:
    if board is None:
        return {}
    return {col.id.value: col.task_ids() for col in board.columns}


def build_tasks_map(board: Board | None) -> dict[str, Task]:
    if board is None:
        return {}
    return {task.id: task for task in board.all_tasks()}


def find_task_column(items: Mapping[str, list[str]], task_id: str) -> str | None:
    for status, task_ids in items.items():
        if task_id in task_ids:
            return status
    return None


def copy_items(items: Mapping[str, list[str]]) -> Items:
    return {status: list(ids) for status, ids in items.items()}


def move_item(items: Items, source_id: str, target: DropTarget | None) -> Items:
    """Return *items* with *source_id* moved to *target*.

    Returns the same object when nothing changes, so callers can detect a
    no-op with ``is``. With an explicit placement, calling twice with the
    same target is a no-op the second time.
    """
    source_col = find_task_column(items, source_id)
    if source_col is None or target is None:
        return items

    if target.kind == COLUMN:
        dest_col = target.id
        if dest_col not in items or dest_col == source_col:
            return items
        updated = copy_items(items)
        updated[source_col].remove(source_id)
        updated[dest_col].append(source_id)
        return updated

    if target.id == source_id:
        return items
    dest_col = find_task_column(items, target.id)
    if dest_col is None:
        return items

    placement = target.placement
    if placement is None:
        source_index = items[source_col].index(source_id)
        target_index = items[dest_col].index(target.id)
        moving_down = dest_col == source_col and source_index < target_index
        placement = "after" if moving_down else "before"

    updated = copy_items(items)
    updated[source_col].remove(source_id)
    dest = updated[dest_col]
    index = dest.index(target.id) + (1 if placement == "after" else 0)
    dest.insert(index, source_id)
    if updated == items:
        return items
    return updated


def build_columns(
    columns: tuple[Column, ...] | list[Column],
    items: Mapping[str, list[str]],
    tasks_map: Mapping[str, Task],
) -> list[Column]:
    """Columns rebuilt from a working copy, for rendering mid-drag."""
    return [
        col.with_tasks(
            [tasks_map[tid] for tid in items.get(col.id.value, []) if tid in tasks_map]
        )
        for col in columns
    ]


# ── Controller ───────────────────────────────────────────────────────


class DragController:
    """Turns drag gestures into at most one optimistic mutation per drop."""

    def __init__(self, mutations: BoardMutations, *, step: float = ORDER_STEP) -> None:
        self.mutations = mutations
        self.step = step
        self._items: Items = {}
        self._start_items: Items = {}
        self._tasks_map: dict[str, Task] = {}
        self._source: DragSource | None = None
        self._active_task: Task | None = None
        self._subscribers = Subscribers()
        self.sync(mutations.peek())

    # ── state ────────────────────────────────────────────────────

    @property
    def items(self) -> Items:
        return self._items

    @property
    def active_task(self) -> Task | None:
        return self._active_task

    @property
    def is_dragging(self) -> bool:
        return self._source is not None

    def subscribe(self, listener: Callable[[Items], None]) -> Callable[[], None]:
        """Listen for working-copy changes (every drag-over that moves something)."""
        return self._subscribers.subscribe(listener)

    def _set_items(self, items: Items) -> None:
        self._items = items
        self._subscribers.notify(items)

    def sync(self, board: Board | None) -> None:
        """Adopt *board* as the resting layout. Ignored mid-drag."""
        if self.is_dragging:
            return
        self._tasks_map = build_tasks_map(board)
        self._set_items(build_items_from_board(board))

    def _clear(self) -> None:
        self._source = None
        self._active_task = None
        self._start_items = {}

    def _resolve(self, source_id: str, target: DropTarget | None) -> DropTarget | None:
        """Pin an automatic placement against the drag-start layout."""
        if target is None or target.kind != ITEM or target.placement is not None:
            return target
        start_col = find_task_column(self._start_items, source_id)
        moving_down = (
            start_col is not None
            and find_task_column(self._start_items, target.id) == start_col
            and self._start_items[start_col].index(source_id)
            < self._start_items[start_col].index(target.id)
        )
        return replace(target, placement="after" if moving_down else "before")

    def _restore(self, reason: str) -> None:
        log.debug(f"Drag {reason}; restoring layout")
        self._set_items(copy_items(self._start_items))
        self._clear()

    # ── events ───────────────────────────────────────────────────

    def drag_start(self, event: DragStartEvent) -> None:
        self._clear()
        self.sync(self.mutations.peek())
        self._start_items = copy_items(self._items)
        source = event.source
        if source is None:
            return
        self._source = source
        if source.kind == ITEM:
            self._active_task = self._tasks_map.get(source.id)

    def drag_over(self, event: DragOverEvent) -> None:
        source = event.source or self._source
        if source is None or source.kind == COLUMN or not self.is_dragging:
            return
        updated = move_item(self._items, source.id, self._resolve(source.id, event.target))
        if updated is not self._items:
            self._set_items(updated)

    async def drag_end(self, event: DragEndEvent) -> DragOutcome:
        source = event.source or self._source
        if source is None or source.kind == COLUMN or not self.is_dragging:
            self._clear()
            return DragOutcome(DragResult.IGNORED)

        if event.canceled:
            self._restore("canceled")
            return DragOutcome(DragResult.CANCELED)

        task_id = source.id
        final = move_item(self._items, task_id, self._resolve(task_id, event.target))
        new_status = find_task_column(final, task_id)
        if new_status is None or new_status not in TaskStatus._value2member_map_:
            self._restore("ended outside a known column")
            return DragOutcome(DragResult.CANCELED)

        column_ids = final[new_status]
        if find_task_column(self._start_items, task_id) == new_status and (
            self._start_items.get(new_status) == column_ids
        ):
            self._clear()
            return DragOutcome(DragResult.UNCHANGED)

        orders = {
            tid: self._tasks_map[tid].metadata.order
            for tid in column_ids
            if tid != task_id and tid in self._tasks_map
        }
        plan = resolve_insert_order(column_ids, orders, task_id, self.step)
        move = MoveTaskInput(
            task_id=task_id, new_status=TaskStatus(new_status), new_order=plan.new_order
        )
        self._items = final
        self._clear()

        if plan.needs_renumber:
            result = await self.mutations.renumber(
                RenumberInput(status=move.new_status, task_ids=list(column_ids), step=self.step)
            )
            status = DragResult.RENUMBERED
        else:
            result = await self.mutations.move(move)
            status = DragResult.MOVED

        self.sync(self.mutations.peek())
        if not result.ok:
            return DragOutcome(DragResult.FAILED, move, result, plan.renumbered)
        return DragOutcome(status, move, result, plan.renumbered)
