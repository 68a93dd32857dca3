"""Pending unpacked folders shared by the watcher and the sync worker."""

from __future__ import annotations

import os
import threading
from pathlib import Path


def unit_key(unit: str | Path) -> str:
    """Return the identity of an unpacked folder (normalised absolute path)."""
    return os.path.normcase(os.path.abspath(os.fspath(unit)))


class SyncQueue:
    """Thread-safe multiset of unpacked folders waiting to be synced.

    ``enqueue`` may be called from any thread at any time, including while
    the worker is draining.  ``drain_distinct`` hands back each folder
    once, no matter how many change events queued it.
    """

    def __init__(self) -> None:
        self._items: list[Path] = []
        self._lock = threading.Lock()

    def enqueue(self, unit: str | Path) -> None:
        """Add *unit* to the queue."""
        path = Path(os.path.abspath(os.fspath(unit)))
        with self._lock:
            self._items.append(path)

    def drain_distinct(self) -> list[Path]:
        """Remove everything queued and return the distinct folders.

        Folders come back in first-enqueued order.
        """
        with self._lock:
            items, self._items = self._items, []
        distinct: dict[str, Path] = {}
        for path in items:
            distinct.setdefault(unit_key(path), path)
        return list(distinct.values())

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
