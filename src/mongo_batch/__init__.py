from mongo_batch.core.checkpoint import CheckpointCoordinator, checkpoint_key
from mongo_batch.core.errors import (
    BatchError,
    BatchRuntimeError,
    InvalidArgumentError,
    UnexpectedValueError,
)
from mongo_batch.core.filters import compose_filter, matches
from mongo_batch.core.iterator import BatchIterator
from mongo_batch.core.models import (
    BatchConfig,
    BatchReport,
    IterationSpec,
    IteratorState,
    SortDirection,
)

__all__ = [
    "BatchConfig",
    "BatchError",
    "BatchIterator",
    "BatchReport",
    "BatchRuntimeError",
    "CheckpointCoordinator",
    "InvalidArgumentError",
    "IterationSpec",
    "IteratorState",
    "SortDirection",
    "UnexpectedValueError",
    "checkpoint_key",
    "compose_filter",
    "matches",
]
