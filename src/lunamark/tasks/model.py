"""Task, column and board models shared by the codec, loader and mutations.

``TaskMetadata`` is the validated front-matter schema (pydantic). Everything
that carries position (``Task``, ``Column``, ``Board``) is a frozen dataclass so
local predictions always build new values instead of editing a cached board.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def today_iso() -> str:
    return date.today().isoformat()


def normalize_date(value: Any) -> Any:
    """Collapse YAML date literals, datetimes and ISO strings to ``YYYY-MM-DD``."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            return text
    return value


class TaskMetadata(BaseModel):
    """Front-matter of one task file."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    status: TaskStatus
    priority: TaskPriority = TaskPriority.MEDIUM
    labels: list[str] = Field(default_factory=list)
    assignee: str | None = None
    created: str = Field(default_factory=today_iso)
    due: str | None = None
    order: float = Field(default=0, ge=0)

    @field_validator("labels", mode="before")
    @classmethod
    def _labels_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_default(cls, value: Any) -> Any:
        return TaskPriority.MEDIUM if value is None else value

    @field_validator("assignee", mode="before")
    @classmethod
    def _blank_assignee_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("created", mode="before")
    @classmethod
    def _created_to_string(cls, value: Any) -> Any:
        value = normalize_date(value)
        return today_iso() if value is None else value

    @field_validator("due", mode="before")
    @classmethod
    def _due_to_string(cls, value: Any) -> Any:
        return normalize_date(value)

    @field_validator("order", mode="before")
    @classmethod
    def _order_default(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError("order must be a number")
        return value


@dataclass(frozen=True)
class Task:
    id: str
    file_path: str
    metadata: TaskMetadata
    content: str = ""

    def __post_init__(self) -> None:
        if self.id != self.metadata.id:
            raise ValueError(
                f"Task id {self.id!r} does not match metadata id {self.metadata.id!r}"
            )

    @property
    def status(self) -> TaskStatus:
        return self.metadata.status

    @property
    def order(self) -> float:
        return self.metadata.order

    def with_metadata(self, **changes: Any) -> "Task":
        """Return a copy with *changes* merged into the metadata."""
        metadata = self.metadata.model_copy(update=changes)
        return replace(self, id=metadata.id, metadata=metadata)


@dataclass(frozen=True)
class ColumnConfig:
    id: TaskStatus
    title: str
    color: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class Column:
    id: TaskStatus
    title: str
    color: str | None = None
    limit: int | None = None
    tasks: tuple[Task, ...] = ()

    @classmethod
    def from_config(cls, config: ColumnConfig, tasks: list[Task] | tuple[Task, ...] = ()) -> "Column":
        return cls(
            id=config.id,
            title=config.title,
            color=config.color,
            limit=config.limit,
            tasks=tuple(tasks),
        )

    def task_ids(self) -> list[str]:
        return [t.id for t in self.tasks]

    def with_tasks(self, tasks: list[Task] | tuple[Task, ...]) -> "Column":
        return replace(self, tasks=tuple(tasks))


@dataclass(frozen=True)
class Board:
    columns: tuple[Column, ...]
    tasks_dir: str
    last_updated: str = field(default_factory=lambda: datetime.now().isoformat())

    def get_column(self, status: TaskStatus | str) -> Column | None:
        for col in self.columns:
            if col.id == status:
                return col
        return None

    def find_task(self, task_id: str) -> Task | None:
        for col in self.columns:
            for task in col.tasks:
                if task.id == task_id:
                    return task
        return None

    def all_tasks(self) -> list[Task]:
        return [task for col in self.columns for task in col.tasks]

    def with_columns(self, columns: list[Column] | tuple[Column, ...]) -> "Board":
        return replace(self, columns=tuple(columns))


DEFAULT_COLUMNS: tuple[ColumnConfig, ...] = (
    ColumnConfig(TaskStatus.TODO, "To Do", color="gray"),
    ColumnConfig(TaskStatus.IN_PROGRESS, "In Progress", color="blue"),
    ColumnConfig(TaskStatus.REVIEW, "Review", color="yellow"),
    ColumnConfig(TaskStatus.DONE, "Done", color="green"),
)


def sort_by_order(tasks: list[Task] | tuple[Task, ...]) -> list[Task]:
    """Ascending by ``order``; ``sorted`` is stable so ties keep input order."""
    return sorted(tasks, key=lambda t: t.metadata.order)


# ── Mutation inputs ──────────────────────────────────────────────────


class CreateTaskInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    labels: list[str] = Field(default_factory=list)
    assignee: str | None = None
    due: str | None = None
    content: str = ""


class UpdateTaskInput(BaseModel):
    """Partial update. Only fields explicitly passed are applied.

    ``assignee=None`` clears the assignee; omitting it leaves it alone.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str | None = Field(default=None, min_length=1)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    labels: list[str] | None = None
    assignee: str | None = None
    due: str | None = None
    order: float | None = Field(default=None, ge=0)
    content: str | None = None

    def metadata_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for name in self.model_fields_set:
            if name in ("id", "content"):
                continue
            value = getattr(self, name)
            if value is None and name not in ("assignee", "due"):
                continue
            if name == "due":
                value = normalize_date(value)
            elif name == "assignee" and value is not None and not value.strip():
                value = None
            changes[name] = value
        return changes

    def content_change(self) -> str | None:
        if "content" in self.model_fields_set:
            return self.content
        return None


class MoveTaskInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_id: str = Field(min_length=1)
    new_status: TaskStatus
    new_order: float = Field(ge=0)


class RenumberInput(BaseModel):
    """Evenly respace a whole column; each listed task lands in *status*."""

    model_config = ConfigDict(frozen=True)

    status: TaskStatus
    task_ids: list[str]
    step: float = Field(default=10, gt=0)
