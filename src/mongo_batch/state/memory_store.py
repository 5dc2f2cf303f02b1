from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple


class InMemoryCheckpointStore:
    """Process-local checkpoint store with optional per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: Dict[str, Tuple[Any, Optional[float]]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        item = self._items.get(key)
        if item is None:
            return default
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._items[key]
            return default
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = self._clock() + ttl if ttl else None
        self._items[key] = (value, expires_at)
        return True

    def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    def has(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel
