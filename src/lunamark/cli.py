"""Lunamark CLI.

Installed as the ``lunamark`` console_script.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from lunamark import __version__
from lunamark.config import Config, get_columns, get_tasks_dir, resolve_config
from lunamark.errors import LunamarkError


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

STATUS_CHOICE = click.Choice(["todo", "in-progress", "review", "done"])
PRIORITY_CHOICE = click.Choice(["low", "medium", "high", "critical"])

_COLUMN_COLORS = {"gray": "bright_black", "grey": "bright_black"}

_PRIORITY_BADGE = {
    "low": "[dim]\\[L][/dim]",
    "medium": "[blue]\\[M][/blue]",
    "high": "[yellow]\\[H][/yellow]",
    "critical": "[red]\\[!][/red]",
}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="lunamark")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Lunamark: a Kanban board backed by markdown files.

    Every task is a ``.md`` file with YAML front-matter; the board is the
    directory.

    \b
    EXAMPLES:
      lunamark init                        # Create ./tasks with sample tasks
      lunamark list --status todo          # Show the To Do column
      lunamark move task-first done        # Move a task to the end of Done
      lunamark move task-first todo -p 0   # Move it to the top of To Do
    """
    from lunamark import log as llog

    llog.set_verbose(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _load_config(ctx: click.Context, tasks_dir: str | None) -> Config:
    from lunamark import log as llog

    # The -v flag can only turn verbosity on; the config file may too.
    verbose = True if ctx.obj and ctx.obj.get("verbose") else None
    cfg = resolve_config(tasks_dir=tasks_dir, verbose=verbose)
    llog.set_verbose(cfg.verbose)
    return cfg


# ── init ─────────────────────────────────────────────────────────────


@main.command()
@click.option("--dir", "-d", "tasks_dir", default=None, help="Tasks directory (default: ./tasks)")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing tasks")
@click.pass_context
def init(ctx: click.Context, tasks_dir: str | None, force: bool) -> None:
    """Create a tasks directory with sample tasks."""
    from lunamark import log as llog
    from lunamark.io_utils import atomic_write, ensure_dir, list_task_files
    from lunamark.tasks.codec import serialize_task

    cfg = _load_config(ctx, tasks_dir)
    root = get_tasks_dir(cfg)

    if root.is_dir() and list_task_files(root) and not force:
        llog.error(f"Tasks directory already contains .md files: {root}")
        llog.info("Use --force to overwrite, or pick another directory with --dir")
        sys.exit(1)

    try:
        ensure_dir(root)
        samples = _sample_tasks(root)
        for task in samples:
            atomic_write(task.file_path, serialize_task(task))
    except OSError as exc:
        llog.error(f"Failed to initialize {root}: {exc}")
        sys.exit(1)

    llog.success(f"Initialized {root} with {len(samples)} sample tasks")
    llog.console.print("")
    llog.console.print("Next steps:")
    llog.console.print(f"  lunamark list --dir {root}")


def _sample_tasks(root: Path) -> list:
    from lunamark.tasks.model import Task, TaskMetadata

    samples = [
        (
            "task-welcome-to-lunamark.md",
            dict(
                id="task-welcome",
                title="Welcome to Lunamark",
                status="done",
                priority="medium",
                labels=["docs", "tutorial"],
                order=10,
            ),
            _WELCOME_BODY,
        ),
        (
            "task-create-your-first.md",
            dict(
                id="task-first",
                title="Create your first task",
                status="todo",
                priority="high",
                labels=["tutorial"],
                order=20,
            ),
            _FIRST_BODY,
        ),
        (
            "task-explore-features.md",
            dict(
                id="task-explore",
                title="Explore the features",
                status="in-progress",
                priority="medium",
                labels=["tutorial", "feature"],
                order=30,
            ),
            _EXPLORE_BODY,
        ),
    ]
    return [
        Task(
            id=meta["id"],
            file_path=str(root / filename),
            metadata=TaskMetadata(**meta),
            content=body,
        )
        for filename, meta, body in samples
    ]


_WELCOME_BODY = """\
## Getting Started

Lunamark is a markdown-based Kanban board. Each task is a `.md` file in
this directory, so the board is git-friendly and editable in any editor.

### Try It Out

1. Run `lunamark list` to see the board
2. Run `lunamark move task-first in-progress`
3. Edit one of these files by hand and list again"""

_FIRST_BODY = """\
## Instructions

Add a markdown file next to this one with front-matter like:

```yaml
id: task-my-first
title: My first task
status: todo
```

### Task Format

- **Title**: shown on the card
- **Status**: which column it's in
- **Priority**: low, medium, high, or critical
- **Labels**: for categorization
- **Due date**: optional deadline"""

_EXPLORE_BODY = """\
## Features to Try

### Ordering
Tasks are sorted by their `order` key. Moving a task between two others
rewrites only that one file.

### Filters
`lunamark list --label tutorial --priority high` narrows the board."""


# ── list ─────────────────────────────────────────────────────────────


@main.command(name="list")
@click.option("--dir", "-d", "tasks_dir", default=None, help="Tasks directory (default: ./tasks)")
@click.option("--status", "-s", type=STATUS_CHOICE, default=None, help="Only show this column")
@click.option("--priority", "-p", type=PRIORITY_CHOICE, default=None, help="Filter by priority")
@click.option("--label", "-l", "labels", multiple=True, help="Filter by label (repeatable, all must match)")
@click.option("--assignee", "-a", default=None, help="Filter by assignee")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_tasks(
    ctx: click.Context,
    tasks_dir: str | None,
    status: str | None,
    priority: str | None,
    labels: tuple[str, ...],
    assignee: str | None,
    as_json: bool,
) -> None:
    """List tasks, grouped by column."""
    from lunamark import log as llog
    from lunamark.tasks.filters import BoardFilters, filter_board
    from lunamark.tasks.loader import load_board

    cfg = _load_config(ctx, tasks_dir)
    root = get_tasks_dir(cfg)
    if not root.is_dir():
        llog.error(f"Tasks directory not found: {root}")
        llog.info("Run 'lunamark init' to create one, or pass --dir")
        sys.exit(1)

    board = asyncio.run(load_board(root, get_columns(cfg)))
    total = len(board.all_tasks())
    done = len(board.get_column("done").tasks) if board.get_column("done") else 0
    board = filter_board(
        board, BoardFilters(assignee=assignee, priority=priority, labels=tuple(labels))
    )
    columns = [c for c in board.columns if status is None or c.id.value == status]

    if as_json:
        payload = [
            {**task.metadata.model_dump(mode="json"), "file_path": task.file_path}
            for col in columns
            for task in col.tasks
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    if total == 0:
        llog.warn(f"No tasks found in {root}")
        llog.info("Run 'lunamark init' to create sample tasks")
        return

    llog.console.print("")
    for col in columns:
        color = _column_style(col.color)
        llog.console.print(f"[{color}]■[/{color}] [bold]{col.title}[/bold] ({len(col.tasks)})")
        for task in col.tasks:
            llog.console.print(f"  {_format_task_line(task)}")
        llog.console.print("")
    llog.console.print(f"[dim]Total: {total} tasks | Done: {done}[/dim]")


def _column_style(color: str | None) -> str:
    from rich.errors import StyleSyntaxError
    from rich.style import Style

    color = _COLUMN_COLORS.get(color or "", color or "white")
    try:
        Style.parse(color)
    except StyleSyntaxError:
        return "white"
    return color


def _format_task_line(task) -> str:
    from rich.markup import escape

    meta = task.metadata
    badge = _PRIORITY_BADGE.get(meta.priority.value, _PRIORITY_BADGE["medium"])
    line = f"{badge} {escape(meta.title)} [dim]({task.id})[/dim]"
    if meta.labels:
        line += f" [dim]\\[{escape(', '.join(meta.labels))}][/dim]"
    if meta.assignee:
        line += f" [cyan]@{escape(meta.assignee)}[/cyan]"
    if meta.due:
        line += f" [magenta]due {escape(meta.due)}[/magenta]"
    return line


# ── move ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("task_id")
@click.argument("status", type=STATUS_CHOICE)
@click.option("--dir", "-d", "tasks_dir", default=None, help="Tasks directory (default: ./tasks)")
@click.option(
    "--position",
    "-p",
    type=click.IntRange(min=0),
    default=None,
    help="0-based index in the target column (default: end)",
)
@click.pass_context
def move(
    ctx: click.Context,
    task_id: str,
    status: str,
    tasks_dir: str | None,
    position: int | None,
) -> None:
    """Move TASK_ID to STATUS, optionally at a given position."""
    from lunamark import log as llog

    cfg = _load_config(ctx, tasks_dir)
    root = get_tasks_dir(cfg)
    try:
        order = asyncio.run(_move_task(cfg, root, task_id, status, position))
    except LunamarkError as exc:
        llog.error(exc.message)
        sys.exit(1)
    llog.success(f"Moved {task_id} to {status} (order {order:g})")


async def _move_task(
    cfg: Config, root: Path, task_id: str, status: str, position: int | None
) -> float:
    from lunamark import log as llog
    from lunamark.errors import NotFoundError
    from lunamark.tasks.model import MoveTaskInput, RenumberInput, TaskStatus
    from lunamark.tasks.ordering import resolve_insert_order
    from lunamark.tasks.repository import TaskRepository

    repo = TaskRepository(root)
    board = await repo.get_board(get_columns(cfg))
    task = board.find_task(task_id)
    if task is None:
        raise NotFoundError(task_id)
    column = board.get_column(status)
    if column is None:
        raise LunamarkError(f"No column configured for status '{status}'")

    others = [t for t in column.tasks if t.id != task_id]
    index = len(others) if position is None else min(position, len(others))
    column_ids = [t.id for t in others]
    column_ids.insert(index, task_id)
    orders = {t.id: t.metadata.order for t in others}

    plan = resolve_insert_order(column_ids, orders, task_id, cfg.order_step)
    if plan.needs_renumber:
        llog.info(f"Renumbering {len(column_ids)} tasks in {status}")
        await repo.renumber_column(
            RenumberInput(status=TaskStatus(status), task_ids=column_ids, step=cfg.order_step)
        )
    else:
        await repo.move_task(
            MoveTaskInput(task_id=task_id, new_status=TaskStatus(status), new_order=plan.new_order)
        )
    return plan.new_order


if __name__ == "__main__":
    main()
