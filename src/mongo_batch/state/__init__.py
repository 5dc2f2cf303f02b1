from mongo_batch.state.base import Checkpoint, CheckpointStore
from mongo_batch.state.memory_store import InMemoryCheckpointStore
from mongo_batch.state.redis_store import RedisCheckpointStore
from mongo_batch.state.sqlite_store import SQLiteCheckpointStore

__all__ = [
    "Checkpoint",
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "RedisCheckpointStore",
    "SQLiteCheckpointStore",
]
