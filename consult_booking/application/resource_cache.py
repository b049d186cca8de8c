from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from typing import Any


@dataclass
class CachedEntry:
    value: Any = None
    has_value: bool = False
    pending: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self.pending is not None and not self.pending.done()


class ResourceCache:
    """
    Per-key store of the last successful fetch plus the in-flight request task.

    There is no expiry: an entry stays valid until it is invalidated or the
    cache is cleared. Generations are issued per resource kind from a single
    monotonic counter so a cleared cache never re-issues an old number.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CachedEntry] = {}
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._epoch = 0

    def get(self, key: str) -> CachedEntry | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        entry = self._entries.setdefault(key, CachedEntry())
        entry.value = value
        entry.has_value = True

    def set_pending(self, key: str, task: asyncio.Task) -> None:
        entry = self._entries.setdefault(key, CachedEntry())
        entry.pending = task

    def clear_pending(self, key: str, task: asyncio.Task) -> bool:
        """Release the pending slot. Returns False when `task` no longer owns the key."""
        entry = self._entries.get(key)
        if entry is None or entry.pending is not task:
            return False
        entry.pending = None
        return True

    def invalidate(self, key: str) -> None:
        """Drop the entry. A request already in flight for it will not be stored."""
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> list[str]:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)
        return keys

    def keys(self) -> list[str]:
        return list(self._entries)

    @property
    def epoch(self) -> int:
        """Bumped by clear(); results issued in an older epoch must not be stored."""
        return self._epoch

    def clear(self) -> None:
        self._entries.clear()
        self._latest.clear()
        self._epoch += 1

    def issue(self, kind: str) -> int:
        generation = next(self._counter)
        self._latest[kind] = generation
        return generation

    def is_latest(self, kind: str, generation: int) -> bool:
        return self._latest.get(kind) == generation
