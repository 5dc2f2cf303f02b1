from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from mongo_batch.core.errors import BatchRuntimeError, UnexpectedValueError
from mongo_batch.core.filters import matches, order_key, resolve_path
from mongo_batch.core.models import SortDirection


def _sort_key(document: Mapping[str, Any], field: str) -> Tuple[int, Any]:
    # missing/None values sort before everything else, like Mongo
    return order_key(resolve_path(document, field))


def _project(document: Mapping[str, Any], projection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return copy.deepcopy(dict(document))

    include = {k for k, v in projection.items() if v and k != "_id"}
    exclude = {k for k, v in projection.items() if not v}
    if include:
        keep_id = projection.get("_id", 1)
        out = {k: copy.deepcopy(v) for k, v in document.items() if k in include}
        if keep_id and "_id" in document:
            out["_id"] = document["_id"]
        return out
    return {k: copy.deepcopy(v) for k, v in document.items() if k not in exclude}


class InMemoryCursor:
    """Cursor over a list of documents held in memory."""

    def __init__(self, documents: List[Mapping[str, Any]], query: Dict[str, Any], projection: Optional[Dict[str, Any]]):
        self._documents = documents
        self._query = query
        self._projection = projection
        self._sort: Optional[Tuple[str, SortDirection]] = None
        self._limit: Optional[int] = None
        self.timeout_disabled = False
        self._started = False

    def sort(self, field: str, direction: SortDirection) -> "InMemoryCursor":
        self._ensure_not_started("sort")
        self._sort = (field, SortDirection.parse(direction))
        return self

    def limit(self, n: int) -> "InMemoryCursor":
        self._ensure_not_started("limit")
        if n <= 0:
            raise UnexpectedValueError("limit", n)
        self._limit = n
        return self

    def disable_timeout(self) -> "InMemoryCursor":
        self.timeout_disabled = True
        return self

    def count(self) -> int:
        return len(self._matching())

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        self._started = True
        for document in self._matching():
            yield _project(document, self._projection)

    def _matching(self) -> List[Mapping[str, Any]]:
        selected = [d for d in self._documents if matches(d, self._query)]
        if self._sort is not None:
            field, direction = self._sort
            selected.sort(key=lambda d: _sort_key(d, field), reverse=direction is SortDirection.DESC)
        if self._limit is not None:
            selected = selected[: self._limit]
        return selected

    def _ensure_not_started(self, method: str) -> None:
        if self._started:
            raise BatchRuntimeError(method, "cursor already started")


class InMemoryQuerySource:
    """QuerySource over an in-memory list; used for tests and dry runs."""

    def __init__(self, documents: Iterable[Mapping[str, Any]] = ()):
        self.documents: List[Mapping[str, Any]] = list(documents)
        self.queries: List[Dict[str, Any]] = []

    def find(self, query: Dict[str, Any], projection: Optional[Dict[str, Any]] = None) -> InMemoryCursor:
        self.queries.append(copy.deepcopy(query))
        return InMemoryCursor(self.documents, query, projection)
