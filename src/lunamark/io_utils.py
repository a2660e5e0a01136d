"""UTF-8 text I/O for task files, including atomic replacement."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

PathLike = Path | str

TASK_SUFFIX = ".md"


def _as_path(path: PathLike) -> Path:
    return path if isinstance(path, Path) else Path(path)


def read_text(path: PathLike, errors: str = "strict") -> str:
    """Read *path* as UTF-8 text."""
    return _as_path(path).read_text(encoding="utf-8", errors=errors)


def write_text(path: PathLike, text: str) -> None:
    """Write *text* to *path* as UTF-8 (non-atomic; used for fixtures and samples)."""
    _as_path(path).write_text(text, encoding="utf-8")


def atomic_write(path: PathLike, text: str) -> None:
    """Replace *path* with *text* via a temp file in the same directory.

    Readers never observe a half-written task file.
    """
    target = _as_path(path)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target.parent, prefix=".", suffix=".tmp", delete=False
        ) as temp_file:
            temp_path = Path(temp_file.name)
            temp_file.write(text)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.replace(temp_path, target)
    finally:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


def is_task_file_name(name: str) -> bool:
    """Return ``True`` for visible ``*.md`` names."""
    return name.endswith(TASK_SUFFIX) and not name.startswith(".")


def list_task_files(directory: PathLike) -> list[Path]:
    """List task files directly inside *directory*, sorted by name.

    Non-recursive. The sort makes the listing order (the tie-break for equal
    ``order`` values) deterministic across platforms.
    """
    root = _as_path(directory)
    return sorted(
        p for p in root.iterdir() if p.is_file() and is_task_file_name(p.name)
    )


def ensure_dir(directory: PathLike) -> Path:
    """Create *directory* (and parents) if needed; idempotent."""
    root = _as_path(directory)
    root.mkdir(parents=True, exist_ok=True)
    return root
