from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from mongo_batch.core.errors import InvalidArgumentError, UnexpectedValueError

DEFAULT_CHECKPOINT_PREFIX = "mongo:batch"

Document = Mapping[str, Any]


class SortDirection(int, Enum):
    """Sort direction of the iteration field."""

    ASC = 1
    DESC = -1

    @property
    def operator(self) -> str:
        """Comparison operator that selects records after a checkpoint."""
        return "$gt" if self is SortDirection.ASC else "$lt"

    @classmethod
    def parse(cls, value: Any) -> "SortDirection":
        """
        Accept an enum member, an "asc"/"desc" token, or an integer sign.

        Raises:
            InvalidArgumentError: If the value is none of the above.
        """
        if isinstance(value, SortDirection):
            return value
        if isinstance(value, bool):
            raise InvalidArgumentError("direction", value)
        if isinstance(value, int):
            if value > 0:
                return cls.ASC
            if value < 0:
                return cls.DESC
            raise InvalidArgumentError("direction", value)
        if isinstance(value, str):
            token = value.strip().lower()
            if token in {"asc", "ascending"}:
                return cls.ASC
            if token in {"desc", "descending"}:
                return cls.DESC
        raise InvalidArgumentError("direction", value)


@dataclass(frozen=True)
class IterationSpec:
    """Field used as the cursor position, and its sort direction."""

    field: str
    direction: SortDirection = SortDirection.ASC


class IteratorState(str, Enum):
    """Lifecycle of a BatchIterator."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _require_positive_int(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise UnexpectedValueError(name, value)
    return value


@dataclass(frozen=True)
class BatchConfig:
    """
    Immutable description of one batch iteration.

    Every ``with_*`` method validates its input and returns a new config, so a
    config value is never observed in a half-valid state.
    """

    iteration: Optional[IterationSpec] = None
    filter: Dict[str, Any] = field(default_factory=dict)
    projection: Optional[Dict[str, Any]] = None
    batch_size: int = 100
    pause_s: float = 0.0
    save_state: bool = False
    save_state_ttl_s: int = 0
    limit: Optional[int] = None
    clear_before: bool = False
    clear_after: bool = False
    calc_count: bool = True
    checkpoint_prefix: str = DEFAULT_CHECKPOINT_PREFIX

    def with_iteration_field(self, name: str, direction: Any = 1) -> "BatchConfig":
        sort = SortDirection.parse(direction)
        key = name.strip() if isinstance(name, str) else ""
        if not key:
            raise UnexpectedValueError("iteration_field", name)
        return replace(self, iteration=IterationSpec(field=key, direction=sort))

    def with_filter(self, query: Optional[Mapping[str, Any]] = None) -> "BatchConfig":
        if query is None:
            query = {}
        if not isinstance(query, Mapping):
            raise InvalidArgumentError("filter", query)
        return replace(self, filter=copy.deepcopy(dict(query)))

    def with_projection(
        self, projection: Union[Mapping[str, Any], Iterable[str], None] = None
    ) -> "BatchConfig":
        if projection is None:
            return replace(self, projection=None)
        if isinstance(projection, Mapping):
            normalized = copy.deepcopy(dict(projection))
        elif isinstance(projection, (list, tuple)) and all(isinstance(p, str) for p in projection):
            normalized = {name: 1 for name in projection}
        else:
            raise InvalidArgumentError("projection", projection)
        return replace(self, projection=normalized or None)

    def with_batch_size(self, size: int = 100) -> "BatchConfig":
        return replace(self, batch_size=_require_positive_int("batch_size", size, 2))

    def with_pause(self, seconds: float) -> "BatchConfig":
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
            raise UnexpectedValueError("pause_s", seconds)
        return replace(self, pause_s=float(seconds))

    def with_save_state(self, enabled: bool, ttl_seconds: Optional[int] = None) -> "BatchConfig":
        cfg = replace(self, save_state=bool(enabled))
        if ttl_seconds is not None:
            cfg = cfg.with_save_state_ttl(ttl_seconds)
        return cfg

    def with_save_state_ttl(self, seconds: int) -> "BatchConfig":
        return replace(self, save_state_ttl_s=_require_positive_int("save_state_ttl_s", seconds, 0))

    def with_limit(self, limit: Optional[int]) -> "BatchConfig":
        if limit is None:
            return replace(self, limit=None)
        return replace(self, limit=_require_positive_int("limit", limit, 1))

    def with_clear_before(self, enabled: bool = True) -> "BatchConfig":
        return replace(self, clear_before=bool(enabled))

    def with_clear_after(self, enabled: bool = True) -> "BatchConfig":
        return replace(self, clear_after=bool(enabled))

    def with_count(self, enabled: bool = True) -> "BatchConfig":
        return replace(self, calc_count=bool(enabled))

    def with_checkpoint_prefix(self, prefix: str) -> "BatchConfig":
        key = prefix.strip() if isinstance(prefix, str) else ""
        if not key:
            raise UnexpectedValueError("checkpoint_prefix", prefix)
        return replace(self, checkpoint_prefix=key)

    @property
    def is_configured(self) -> bool:
        return self.iteration is not None

    def validate_for_run(self) -> IterationSpec:
        """Return the iteration spec, or fail when none has been set."""
        if self.iteration is None:
            raise UnexpectedValueError("iteration_field", None)
        return self.iteration


@dataclass
class BatchReport:
    """Summary of a single run."""

    effective_filter: Dict[str, Any] = field(default_factory=dict)
    resumed_from: Any = None
    processed: int = 0
    total: Optional[int] = None
    stop_reason: str = ""
    checkpoint_writes: int = 0
    checkpoint_failures: int = 0
    pauses: int = 0
    elapsed_s: float = 0.0
    started_at_utc: str = ""
    finished_at_utc: str = ""
