from __future__ import annotations

import threading
from typing import Callable, Dict, Generic, TypeVar

T = TypeVar("T")


class HandleCache(Generic[T]):
    """Per-collection connection handles, resolved at most once per key.

    ``get_or_create`` holds a per-key lock while the factory runs, so
    concurrent first use of the same collection performs one resolution.
    Different collections resolve in parallel.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, T] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get_or_create(self, key: str, factory: Callable[[str], T]) -> T:
        handle = self._handles.get(key)
        if handle is not None:
            return handle

        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())

        with lock:
            handle = self._handles.get(key)
            if handle is None:
                handle = factory(key)
                self._handles[key] = handle
            return handle

    def invalidate(self, key: str) -> None:
        with self._guard:
            self._handles.pop(key, None)

    def clear(self) -> None:
        with self._guard:
            self._handles.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._handles

    def __len__(self) -> int:
        return len(self._handles)
