from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class Checkpoint:
    """Persisted iteration position."""

    key: str
    value: Any
    ttl_s: int = 0


class CheckpointStore(Protocol):
    """Protocol for checkpoint backends. A ttl of 0 or None means no expiry."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...

    def delete(self, key: str) -> bool: ...
