from __future__ import annotations

from typing import Any, Optional

from mongo_batch.core.models import DEFAULT_CHECKPOINT_PREFIX, BatchConfig, IterationSpec
from mongo_batch.state.base import Checkpoint, CheckpointStore
from mongo_batch.utils.logging import get_logger


def checkpoint_key(iteration: IterationSpec, prefix: str = DEFAULT_CHECKPOINT_PREFIX) -> str:
    """Deterministic key: one per (field, direction) pair under a prefix."""
    return f"{prefix}:{iteration.field}:{int(iteration.direction)}"


class CheckpointCoordinator:
    """
    Reads, writes and clears the checkpoint of one iteration spec.

    Writes are best-effort: a failing store is logged and counted, never raised,
    so a flaky checkpoint backend cannot abort a run.
    """

    def __init__(
        self,
        store: Optional[CheckpointStore],
        iteration: IterationSpec,
        save_state: bool = False,
        ttl_s: int = 0,
        prefix: str = DEFAULT_CHECKPOINT_PREFIX,
    ):
        self.store = store
        self.iteration = iteration
        self.save_state = save_state
        self.ttl_s = ttl_s
        self.key = checkpoint_key(iteration, prefix)
        self.writes = 0
        self.failures = 0
        self.last_checkpoint: Optional[Checkpoint] = None
        self.log = get_logger("mongo_batch.checkpoint")

    @classmethod
    def for_config(cls, store: Optional[CheckpointStore], config: BatchConfig) -> "CheckpointCoordinator":
        return cls(
            store=store,
            iteration=config.validate_for_run(),
            save_state=config.save_state,
            ttl_s=config.save_state_ttl_s,
            prefix=config.checkpoint_prefix,
        )

    @property
    def enabled(self) -> bool:
        return self.save_state and self.store is not None

    def load_resume_value(self) -> Any:
        if not self.enabled:
            return None
        value = self.store.get(self.key)
        if value is None or value == "":
            return None
        self.log.debug("Loaded checkpoint %s=%r", self.key, value)
        return value

    def persist(self, value: Any) -> bool:
        if not self.enabled:
            return False

        try:
            ok = bool(self.store.set(self.key, value, self.ttl_s or None))
        except Exception as e:
            self.failures += 1
            self.log.warning("Checkpoint write failed for %s: %s: %s", self.key, type(e).__name__, e)
            return False

        if not ok:
            self.failures += 1
            self.log.warning("Checkpoint store rejected write for %s", self.key)
            return False

        self.writes += 1
        self.last_checkpoint = Checkpoint(key=self.key, value=value, ttl_s=self.ttl_s)
        return True

    def clear(self) -> bool:
        if self.store is None:
            return False
        deleted = bool(self.store.delete(self.key))
        self.log.info("Cleared checkpoint %s (existed=%s)", self.key, deleted)
        return deleted
