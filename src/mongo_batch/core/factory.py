from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from mongo_batch.config_models import BatchJobFile, config_to_batch_config
from mongo_batch.core.iterator import BatchIterator
from mongo_batch.core.models import BatchConfig
from mongo_batch.sources.base import QuerySource
from mongo_batch.sources.memory import InMemoryQuerySource
from mongo_batch.state.base import CheckpointStore
from mongo_batch.state.memory_store import InMemoryCheckpointStore
from mongo_batch.state.sqlite_store import SQLiteCheckpointStore


@dataclass(frozen=True)
class BuiltComponents:
    iterator: BatchIterator
    source: QuerySource
    checkpoint_store: Optional[CheckpointStore]
    config: BatchConfig


class ComponentFactory:
    """
    Factory responsible for wiring a job file into a runnable BatchIterator.
    Keeps main.py clean and the backends swappable.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self.sleep = sleep

    def build(self, job_file: BatchJobFile) -> BuiltComponents:
        """
        Build all components needed for a batch run.

        Args:
            job_file: The validated job configuration.

        Returns:
            A container with all built components.
        """
        config = config_to_batch_config(job_file)
        source = self._source(job_file)
        store = self._checkpoint_store(job_file)
        iterator = BatchIterator(source=source, config=config, checkpoint_store=store, sleep=self.sleep)
        return BuiltComponents(iterator=iterator, source=source, checkpoint_store=store, config=config)

    # ---------- Builders (private) ----------

    def _source(self, job_file: BatchJobFile) -> QuerySource:
        """Create the query source."""
        src = job_file.source
        if src.type == "memory":
            return InMemoryQuerySource(src.documents)

        # Import locally so pymongo is only loaded for mongo sources.
        from mongo_batch.sources.mongo import MongoQuerySource

        return MongoQuerySource.from_uri(src.uri, src.database, src.collection)

    def _checkpoint_store(self, job_file: BatchJobFile) -> Optional[CheckpointStore]:
        """Create the checkpoint store, or None when checkpointing is off."""
        cp = job_file.checkpoint
        if cp.backend == "memory":
            return InMemoryCheckpointStore()
        if cp.backend == "sqlite":
            return SQLiteCheckpointStore(cp.path)
        if cp.backend == "redis":
            from mongo_batch.state.redis_store import RedisCheckpointStore

            return RedisCheckpointStore.from_url(cp.url)
        return None
