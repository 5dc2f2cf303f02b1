from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from pymongo import MongoClient
from pymongo.collection import Collection

from mongo_batch.core.errors import BatchRuntimeError, UnexpectedValueError
from mongo_batch.core.models import SortDirection
from mongo_batch.utils.logging import get_logger


class MongoCursor:
    """
    Deferred pymongo cursor.

    Options are collected first and the real cursor is opened on iteration,
    because ``no_cursor_timeout`` must be passed to ``find`` itself.
    Counting goes through ``count_documents`` since pymongo 4 dropped
    ``Cursor.count()``.
    """

    def __init__(self, collection: Collection, query: Dict[str, Any], projection: Optional[Dict[str, Any]]):
        self.collection = collection
        self.query = query
        self.projection = projection
        self.no_cursor_timeout = False
        self._sort: Optional[Tuple[str, int]] = None
        self._limit: Optional[int] = None
        self._cursor = None

    def sort(self, field: str, direction: SortDirection) -> "MongoCursor":
        self._ensure_not_started("sort")
        self._sort = (field, int(SortDirection.parse(direction)))
        return self

    def limit(self, n: int) -> "MongoCursor":
        self._ensure_not_started("limit")
        if n <= 0:
            raise UnexpectedValueError("limit", n)
        self._limit = n
        return self

    def disable_timeout(self) -> "MongoCursor":
        self._ensure_not_started("disable_timeout")
        self.no_cursor_timeout = True
        return self

    def count(self) -> int:
        kwargs: Dict[str, Any] = {}
        if self._limit is not None:
            kwargs["limit"] = self._limit
        return int(self.collection.count_documents(self.query, **kwargs))

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        cursor = self._open()
        try:
            for document in cursor:
                yield document
        finally:
            # no_cursor_timeout cursors stay alive on the server until closed
            cursor.close()

    def _open(self):
        self._ensure_not_started("iterate")
        cursor = self.collection.find(self.query, self.projection, no_cursor_timeout=self.no_cursor_timeout)
        if self._sort is not None:
            cursor = cursor.sort(*self._sort)
        if self._limit is not None:
            cursor = cursor.limit(self._limit)
        self._cursor = cursor
        return cursor

    def _ensure_not_started(self, method: str) -> None:
        if self._cursor is not None:
            raise BatchRuntimeError(method, "cursor already started")


class MongoQuerySource:
    """QuerySource over a pymongo collection."""

    def __init__(self, collection: Collection):
        if collection is None:
            raise BatchRuntimeError("MongoQuerySource", "bad collection object")
        self.collection = collection
        self.log = get_logger("mongo_batch.sources.mongo")

    @classmethod
    def from_uri(cls, uri: str, db_name: str, collection_name: str, **client_kwargs: Any) -> "MongoQuerySource":
        db = (db_name or "").strip()
        if not db:
            raise UnexpectedValueError("db_name", db_name)
        coll = (collection_name or "").strip()
        if not coll:
            raise UnexpectedValueError("collection_name", collection_name)

        client = MongoClient(uri, **client_kwargs)
        return cls(client[db][coll])

    def find(self, query: Dict[str, Any], projection: Optional[Dict[str, Any]] = None) -> MongoCursor:
        self.log.debug("find on %s filter=%s", self.collection.full_name, query)
        return MongoCursor(self.collection, query, projection)
