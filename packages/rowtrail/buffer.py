"""Per-transaction append log of capture entries."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class CaptureBuffer(Generic[T]):
    """Lock-guarded FIFO owned by exactly one capturing transaction.

    ``drain`` swaps the accumulated list out under the same lock that guards
    ``add``, so concurrent statement calls on one transaction never lose or
    duplicate an entry and no entry is returned by two drains.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: list[T] = []

    def add(self, item: T) -> None:
        with self._lock:
            self._items.append(item)

    def drain(self) -> list[T]:
        with self._lock:
            items = self._items
            self._items = []
        return items

    def reset(self) -> None:
        self.drain()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
