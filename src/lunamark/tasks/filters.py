"""Board filtering by assignee, priority and labels."""

from __future__ import annotations

from dataclasses import dataclass, field

from lunamark.tasks.model import Board, Task, TaskPriority


@dataclass(frozen=True)
class BoardFilters:
    assignee: str | None = None
    priority: TaskPriority | None = None
    labels: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_active_filters(self) -> bool:
        return self.assignee is not None or self.priority is not None or bool(self.labels)

    def matches(self, task: Task) -> bool:
        meta = task.metadata
        if self.assignee is not None and meta.assignee != self.assignee:
            return False
        if self.priority is not None and meta.priority != self.priority:
            return False
        return all(label in meta.labels for label in self.labels)

    def toggle_label(self, label: str) -> "BoardFilters":
        if label in self.labels:
            labels = tuple(lbl for lbl in self.labels if lbl != label)
        else:
            labels = self.labels + (label,)
        return BoardFilters(self.assignee, self.priority, labels)


def filter_board(board: Board, filters: BoardFilters) -> Board:
    """Return a board whose columns only hold tasks matching *filters*."""
    if not filters.has_active_filters:
        return board
    return board.with_columns(
        [col.with_tasks([t for t in col.tasks if filters.matches(t)]) for col in board.columns]
    )
