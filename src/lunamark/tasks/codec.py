"""Task file codec: YAML front-matter + markdown body <-> :class:`Task`.

File layout::

    ---
    id: task-welcome
    title: Welcome
    status: todo
    ...
    ---

    Body markdown

``parse_task`` is pure and never raises for malformed input; it returns a
:class:`Result` carrying either the task or a :class:`ParseError` that names
the offending fields. ``serialize_task`` emits the canonical key order and
omits absent optional fields.
"""

from __future__ import annotations

import re
from typing import Any

import pydantic
import yaml

from lunamark.errors import ParseError, Result
from lunamark.tasks.model import Task, TaskMetadata

DELIMITER = "---"

_FRONT_MATTER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(?P<front>.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)(?P<body>.*)\Z",
    re.DOTALL | re.MULTILINE,
)


def split_front_matter(raw_text: str) -> tuple[str, str] | None:
    """Return ``(front_matter, body)`` or ``None`` when delimiters are missing."""
    match = _FRONT_MATTER_RE.match(raw_text)
    if not match:
        return None
    return match.group("front"), match.group("body")


def _error_fields(exc: pydantic.ValidationError) -> list[str]:
    fields: list[str] = []
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue.get("loc", ()))
        if path and path not in fields:
            fields.append(path)
    return fields


def _error_summary(exc: pydantic.ValidationError) -> str:
    parts = []
    for issue in exc.errors():
        path = ".".join(str(part) for part in issue.get("loc", ())) or "<root>"
        parts.append(f"{path}: {issue.get('msg', 'invalid')}")
    return ", ".join(parts)


def parse_task(file_path: str, raw_text: str) -> Result[Task]:
    """Parse one task file's text into a validated :class:`Task`."""
    parts = split_front_matter(raw_text)
    if parts is None:
        return Result.failure(
            ParseError(
                f"Missing front-matter block in {file_path}",
                file_path=file_path,
            )
        )
    front, body = parts

    try:
        data = yaml.safe_load(front) if front.strip() else {}
    except yaml.YAMLError as exc:
        return Result.failure(
            ParseError(f"Failed to parse {file_path}: {exc}", file_path=file_path)
        )

    if not isinstance(data, dict):
        return Result.failure(
            ParseError(
                f"Front-matter in {file_path} is not a key/value mapping",
                file_path=file_path,
            )
        )

    try:
        metadata = TaskMetadata.model_validate(data)
    except pydantic.ValidationError as exc:
        return Result.failure(
            ParseError(
                f"Invalid front-matter in {file_path}: {_error_summary(exc)}",
                file_path=file_path,
                fields=_error_fields(exc),
                partial=data,
            )
        )

    return Result.success(
        Task(
            id=metadata.id,
            file_path=file_path,
            metadata=metadata,
            content=body.strip(),
        )
    )


def _order_value(order: float) -> float | int:
    return int(order) if float(order).is_integer() else order


def front_matter_dict(metadata: TaskMetadata) -> dict[str, Any]:
    """Canonical, YAML-ready mapping for *metadata*."""
    data: dict[str, Any] = {
        "id": metadata.id,
        "title": metadata.title,
        "status": metadata.status.value,
        "priority": metadata.priority.value,
        "labels": list(metadata.labels),
        "created": metadata.created,
        "order": _order_value(metadata.order),
    }
    if metadata.assignee:
        data["assignee"] = metadata.assignee
    if metadata.due:
        data["due"] = metadata.due
    return data


def serialize_task(task: Task) -> str:
    """Render *task* as file text (front-matter block followed by the body)."""
    front = yaml.safe_dump(
        front_matter_dict(task.metadata),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    text = f"{DELIMITER}\n{front}{DELIMITER}\n"
    if task.content:
        text += f"\n{task.content}\n"
    return text


def slugify(title: str, max_len: int = 50) -> str:
    """Convert a title to a filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:max_len].rstrip("-")


def generate_filename(task_id: str, title: str) -> str:
    """``<id>-<slug>.md``, or ``<id>.md`` when the title has no usable characters."""
    slug = slugify(title)
    return f"{task_id}-{slug}.md" if slug else f"{task_id}.md"
