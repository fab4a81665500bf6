from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from typing import Hashable, Iterator

from ..core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from ..core.exceptions import ConcurrentModification


class _KeyLock:
    # threading.Lock itself cannot be weakly referenced.
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


class KeyedLocks:
    """Record-scoped mutual exclusion.

    One lock per key, created on demand and dropped once nobody holds a
    reference to it. Different keys never contend with each other.
    """

    def __init__(self, *, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self._timeout = float(timeout)
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[Hashable, _KeyLock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        entry = self._lock_for(key)
        if not entry.lock.acquire(timeout=self._timeout):
            raise ConcurrentModification(f"Record {key!r} is being modified, please retry")
        try:
            yield
        finally:
            entry.lock.release()
