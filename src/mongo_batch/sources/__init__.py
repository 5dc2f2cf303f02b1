from mongo_batch.sources.base import Cursor, QuerySource
from mongo_batch.sources.memory import InMemoryCursor, InMemoryQuerySource

# mongo_batch.sources.mongo is imported on demand so pymongo loads only for mongo sources.

__all__ = [
    "Cursor",
    "InMemoryCursor",
    "InMemoryQuerySource",
    "QuerySource",
]
