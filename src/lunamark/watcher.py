"""Watch the tasks directory and mark the cached board stale on change.

Edits made outside lunamark (an editor, ``git pull``) arrive as bursts of
filesystem events; they are collapsed into one invalidation after
``debounce`` seconds of quiet.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from lunamark import log
from lunamark.cache import BoardCache
from lunamark.config import Config, get_tasks_dir
from lunamark.io_utils import is_task_file_name
from lunamark.mutations import BOARD_KEY

DEFAULT_DEBOUNCE = 0.2

_IGNORED_SUFFIXES = (".swp", ".swx", ".tmp", "~")


def is_watched_path(path: str) -> bool:
    name = Path(path).name
    if name.endswith(_IGNORED_SUFFIXES):
        return False
    return is_task_file_name(name)


class TaskFileEventHandler(FileSystemEventHandler):
    """Forward create/modify/delete/move of task files to *callback*."""

    def __init__(self, callback: Callable[[str, str], None]) -> None:
        super().__init__()
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in (
            "created",
            "modified",
            "deleted",
            "moved",
        ):
            return
        paths = [str(event.src_path)]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(str(dest))
        for path in paths:
            if is_watched_path(path):
                self.callback(event.event_type, path)
                # One notification per event is enough to invalidate.
                return


class BoardWatcher:
    """Debounced ``cache.invalidate(key)`` driven by a watchdog observer.

    Pass *loop* when the cache is used from an asyncio loop; the invalidation
    is then scheduled onto that loop instead of the observer thread.
    """

    def __init__(
        self,
        tasks_dir: str | Path,
        cache: BoardCache,
        *,
        key: str = BOARD_KEY,
        debounce: float = DEFAULT_DEBOUNCE,
        loop: asyncio.AbstractEventLoop | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.tasks_dir = Path(tasks_dir)
        self.cache = cache
        self.key = key
        self.debounce = debounce
        self.loop = loop
        self.on_change = on_change
        self.handler = TaskFileEventHandler(self._on_event)
        self._observer: Observer | None = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._observer is not None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(self.handler, str(self.tasks_dir), recursive=False)
        observer.start()
        self._observer = observer
        log.debug(f"Watching {self.tasks_dir}")

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join()
            log.debug(f"Stopped watching {self.tasks_dir}")

    def _on_event(self, event_type: str, path: str) -> None:
        log.debug(f"{event_type}: {path}")
        self.schedule()

    def schedule(self) -> None:
        """(Re)start the debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Fire the pending invalidation now, if there is one."""
        with self._lock:
            if self._timer is None:
                return
            self._timer.cancel()
            self._timer = None
        if self.loop is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._invalidate)
        else:
            self._invalidate()

    def _invalidate(self) -> None:
        self.cache.invalidate(self.key)
        if self.on_change is not None:
            self.on_change()

    def __enter__(self) -> "BoardWatcher":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()


def watch_board(
    cfg: Config,
    cache: BoardCache,
    *,
    key: str = BOARD_KEY,
    loop: asyncio.AbstractEventLoop | None = None,
    on_change: Callable[[], None] | None = None,
) -> BoardWatcher | None:
    """Start a watcher for *cfg*'s tasks directory, or return ``None`` when
    ``watch`` is turned off."""
    if not cfg.watch:
        log.debug("File watching disabled in config")
        return None
    watcher = BoardWatcher(
        get_tasks_dir(cfg),
        cache,
        key=key,
        debounce=cfg.watch_debounce,
        loop=loop,
        on_change=on_change,
    )
    watcher.start()
    return watcher
