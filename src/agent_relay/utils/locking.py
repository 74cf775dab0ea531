"""In-process locks keyed by arbitrary hashable values."""

from __future__ import annotations

import threading
import weakref
from typing import Hashable


class KeyedLocks:
    """Hands out one ``threading.Lock`` per key.

    Entries are weak: a lock disappears once no caller holds a reference to it,
    so the table only grows with the number of keys in use at the same time.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[Hashable, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock
