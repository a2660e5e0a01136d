"""Tests for lunamark.watcher: event filtering and debounced invalidation."""

from __future__ import annotations

import time

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from lunamark.cache import BoardCache
from lunamark.config import Config
from lunamark.mutations import BOARD_KEY
from lunamark.watcher import BoardWatcher, TaskFileEventHandler, is_watched_path, watch_board


@pytest.mark.parametrize(
    "path, watched",
    [
        ("/t/task-a.md", True),
        ("/t/.task-a.md", False),
        ("/t/task-a.md.swp", False),
        ("/t/task-a.md~", False),
        ("/t/.tmpabc.tmp", False),
        ("/t/notes.txt", False),
    ],
)
def test_is_watched_path(path, watched):
    assert is_watched_path(path) is watched


class TestTaskFileEventHandler:
    def _handler(self):
        seen: list[tuple[str, str]] = []
        return TaskFileEventHandler(lambda kind, path: seen.append((kind, path))), seen

    def test_forwards_task_file_events(self):
        handler, seen = self._handler()
        handler.dispatch(FileCreatedEvent("/t/a.md"))
        handler.dispatch(FileModifiedEvent("/t/a.md"))
        handler.dispatch(FileDeletedEvent("/t/a.md"))
        assert [kind for kind, _ in seen] == ["created", "modified", "deleted"]

    def test_ignores_directories_and_other_files(self):
        handler, seen = self._handler()
        handler.dispatch(DirCreatedEvent("/t/sub"))
        handler.dispatch(FileModifiedEvent("/t/.a.md.swp"))
        handler.dispatch(FileCreatedEvent("/t/readme.txt"))
        assert seen == []

    def test_atomic_rename_onto_task_file(self):
        """An editor writing via temp file + rename still counts."""
        handler, seen = self._handler()
        handler.dispatch(FileMovedEvent("/t/.a.md.tmp", "/t/a.md"))
        assert seen == [("moved", "/t/a.md")]


class TestBoardWatcher:
    def test_burst_collapses_into_one_invalidation(self, tasks_dir):
        cache = BoardCache()
        cache.set(BOARD_KEY, "board")
        fired: list[int] = []
        watcher = BoardWatcher(tasks_dir, cache, debounce=60, on_change=lambda: fired.append(1))

        for _ in range(5):
            watcher.handler.dispatch(FileModifiedEvent(str(tasks_dir / "a.md")))
        assert watcher.pending
        assert not cache.is_stale(BOARD_KEY)

        watcher.flush()

        assert cache.is_stale(BOARD_KEY)
        assert fired == [1]
        assert not watcher.pending
        watcher.stop()

    def test_flush_without_pending_is_noop(self, tasks_dir):
        cache = BoardCache()
        cache.set(BOARD_KEY, "board")
        BoardWatcher(tasks_dir, cache).flush()
        assert not cache.is_stale(BOARD_KEY)

    def test_timer_fires_after_debounce(self, tasks_dir):
        cache = BoardCache()
        cache.set(BOARD_KEY, "board")
        watcher = BoardWatcher(tasks_dir, cache, debounce=0.01)
        watcher.schedule()
        deadline = time.monotonic() + 2
        while not cache.is_stale(BOARD_KEY) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert cache.is_stale(BOARD_KEY)

    def test_stop_cancels_pending(self, tasks_dir):
        cache = BoardCache()
        cache.set(BOARD_KEY, "board")
        watcher = BoardWatcher(tasks_dir, cache, debounce=60)
        watcher.schedule()
        watcher.stop()
        assert not watcher.pending
        assert not cache.is_stale(BOARD_KEY)

    def test_start_and_stop(self, tmp_path):
        target = tmp_path / "watched"
        with BoardWatcher(target, BoardCache()) as watcher:
            assert watcher.running
            assert target.is_dir()
        assert not watcher.running


class TestWatchBoard:
    def test_uses_configured_dir_and_debounce(self, tmp_path):
        cfg = Config(tasks_dir="board", config_dir=str(tmp_path), watch_debounce=1.5)
        watcher = watch_board(cfg, BoardCache())
        try:
            assert watcher.running
            assert watcher.debounce == 1.5
            assert watcher.tasks_dir == (tmp_path / "board").resolve()
        finally:
            watcher.stop()

    def test_disabled_by_config(self, tmp_path):
        cfg = Config(tasks_dir=str(tmp_path), watch=False)
        assert watch_board(cfg, BoardCache()) is None
