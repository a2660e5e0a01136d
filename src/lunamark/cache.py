"""Client-side keyed cache for board snapshots.

One entry per key holds the last value, a stale flag and at most one
in-flight read. Mutations cancel that read before snapshotting so a late
reload can never overwrite an optimistic prediction. Listeners registered
with :meth:`BoardCache.subscribe` are called on every :meth:`BoardCache.set`.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from lunamark import log

Listener = Callable[[Any], None]
Loader = Callable[[], Awaitable[Any]]


class Subscribers:
    """Ordered listener set with subscribe/notify as its whole contract."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as exc:  # a broken listener must not break a write
                log.error(f"Listener {listener!r} failed: {exc}")

    def __len__(self) -> int:
        return len(self._listeners)


@dataclass
class _Entry:
    value: Any = None
    has_value: bool = False
    stale: bool = True
    fetch: asyncio.Task | None = None
    subscribers: Subscribers = field(default_factory=Subscribers)


class BoardCache:
    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def _entry(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        return entry

    # ── plain access ─────────────────────────────────────────────

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        return entry.value if entry and entry.has_value else None

    def set(self, key: str, value: Any) -> None:
        """Replace the cached value and notify subscribers. Clears staleness."""
        entry = self._entry(key)
        entry.value = value
        entry.has_value = True
        entry.stale = False
        entry.subscribers.notify(value)

    def invalidate(self, key: str) -> None:
        """Mark *key* stale; the next :meth:`ensure` reloads it."""
        self._entry(key).stale = True
        log.debug(f"Cache '{key}' invalidated")

    def is_stale(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale or not entry.has_value

    def in_flight(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.fetch and not entry.fetch.done())

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        return self._entry(key).subscribers.subscribe(listener)

    # ── reads ────────────────────────────────────────────────────

    async def cancel_in_flight(self, key: str) -> None:
        """Cancel the pending read for *key*, if any, and wait for it to unwind."""
        entry = self._entries.get(key)
        if entry is None or entry.fetch is None:
            return
        fetch, entry.fetch = entry.fetch, None
        if fetch.done():
            return
        fetch.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await fetch
        log.debug(f"Cache '{key}': in-flight read cancelled")

    async def fetch(self, key: str, loader: Loader) -> Any:
        """Run *loader* and store its value. Joins a read already in flight."""
        entry = self._entry(key)
        if entry.fetch is None or entry.fetch.done():
            entry.fetch = asyncio.ensure_future(self._run_fetch(key, loader))
        task = entry.fetch
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                # The read was cancelled by a mutation; report what the cache holds.
                return self.get(key)
            raise

    async def _run_fetch(self, key: str, loader: Loader) -> Any:
        value = await loader()
        self.set(key, value)
        return value

    async def ensure(self, key: str, loader: Loader) -> Any:
        """Return the cached value, reloading first if it is missing or stale."""
        if self.is_stale(key):
            return await self.fetch(key, loader)
        return self.get(key)
