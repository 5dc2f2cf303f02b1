from __future__ import annotations

from typing import Any, Optional


class BatchError(Exception):
    """Base class for every error raised by mongo_batch."""


class InvalidArgumentError(BatchError, ValueError):
    """A setter received a value outside its accepted domain."""

    def __init__(self, argument: str, value: Any):
        self.argument = argument
        self.value = value
        super().__init__(f"Invalid argument {argument} = {value!r}")


class UnexpectedValueError(BatchError, ValueError):
    """A value is well-formed but cannot be used (e.g. batch_size <= 1)."""

    def __init__(self, name: str, value: Any):
        self.name = name
        self.value = value
        super().__init__(f"Unexpected value {name} = {value!r}")


class BatchRuntimeError(BatchError, RuntimeError):
    """
    A fault discovered while a run is in progress.

    Attributes:
        phase: Where the fault was detected (e.g. "execute", "iterate").
        field: Iteration field involved, when the fault concerns a document.
        processed: Number of callbacks invoked before the fault.
    """

    def __init__(
        self,
        phase: str,
        message: str = "",
        *,
        field: Optional[str] = None,
        processed: int = 0,
    ):
        self.phase = phase
        self.field = field
        self.processed = processed
        super().__init__(f"{phase}: {message}")
