from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

from mongo_batch.core.models import SortDirection


class Cursor(Protocol):
    """Protocol for a forward-only result cursor."""

    def sort(self, field: str, direction: SortDirection) -> "Cursor": ...

    def limit(self, n: int) -> "Cursor": ...

    def count(self) -> int: ...

    def disable_timeout(self) -> "Cursor": ...

    def __iter__(self) -> Iterator[Mapping[str, Any]]: ...


class QuerySource(Protocol):
    """Protocol for anything that can run a filtered query over a collection."""

    def find(
        self,
        query: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
    ) -> Cursor: ...
