from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Optional

from mongo_batch.core.checkpoint import CheckpointCoordinator
from mongo_batch.core.errors import BatchError, BatchRuntimeError
from mongo_batch.core.filters import compose_filter, constrains_field, is_missing, resolve_path
from mongo_batch.core.models import BatchConfig, BatchReport, IteratorState
from mongo_batch.core.policies import Pacer
from mongo_batch.sources.base import Cursor, QuerySource
from mongo_batch.state.base import CheckpointStore
from mongo_batch.utils.logging import get_logger
from mongo_batch.utils.time import elapsed_since, utc_now_iso

BatchCallback = Callable[[Mapping[str, Any], int, Optional[int]], Any]


def _is_empty(value: Any) -> bool:
    if is_missing(value) or value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) == 0
    return False


class BatchIterator:
    """
    Drives one checkpointed, paced scan over a QuerySource.

    Per document the order is: validate, count, callback, checkpoint, pace,
    then the precomputed-count check. The checkpoint is written before the run
    can stop, so the position of the last processed record is always stored
    and a resumed run starts right after it.
    """

    def __init__(
        self,
        source: QuerySource,
        config: Optional[BatchConfig] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            source: Query capability used to open the cursor.
            config: Iteration configuration; may be replaced later via ``configure``.
            checkpoint_store: Backend for checkpoints. Without one, save-state
                and clearing are no-ops.
            sleep: Blocking sleep used for pacing.
        """
        self.source = source
        self.checkpoint_store = checkpoint_store
        self._sleep = sleep
        self.config = config or BatchConfig()
        self.last_report: Optional[BatchReport] = None
        self._state = IteratorState.CONFIGURED if self.config.is_configured else IteratorState.UNCONFIGURED
        self.log = get_logger("mongo_batch.iterator")

    @property
    def state(self) -> IteratorState:
        return self._state

    def configure(self, config: BatchConfig) -> "BatchIterator":
        """Swap in a new configuration between runs."""
        if self._state is IteratorState.RUNNING:
            raise BatchRuntimeError("configure", "cannot reconfigure a running iterator")
        self.config = config
        self._state = IteratorState.CONFIGURED if config.is_configured else IteratorState.UNCONFIGURED
        return self

    def execute(self, callback: BatchCallback) -> int:
        """Run to completion and return the number of documents processed."""
        return self.run(callback).processed

    def run(self, callback: BatchCallback) -> BatchReport:
        """
        Run to completion.

        Args:
            callback: Called as ``callback(document, processed, total)`` where
                ``processed`` is 1-based and ``total`` is None when unknown.

        Returns:
            A report for the run.

        Raises:
            BatchRuntimeError: Callback not callable, cursor unusable, or a
                document without a usable iteration value.
            UnexpectedValueError: No iteration field configured.
            Exception: Whatever the callback raises, unchanged.
        """
        if self._state is IteratorState.RUNNING:
            raise BatchRuntimeError("execute", "iterator is already running")
        config = self.config
        try:
            if not callable(callback):
                raise BatchRuntimeError("execute", "callback function is not callable")
            iteration = config.validate_for_run()
        except BatchError:
            self._state = IteratorState.FAILED
            raise

        coordinator = CheckpointCoordinator.for_config(self.checkpoint_store, config)
        pacer = Pacer(config.batch_size, config.pause_s, sleep=self._sleep)
        report = BatchReport(started_at_utc=utc_now_iso())
        self.last_report = report
        started = time.perf_counter()

        self._state = IteratorState.RUNNING
        try:
            if config.clear_before:
                coordinator.clear()

            resume_value = coordinator.load_resume_value()
            report.resumed_from = resume_value
            report.effective_filter = compose_filter(
                config.filter, iteration.field, resume_value, iteration.direction
            )

            self.log.info(
                "Batch started: field=%s direction=%s batch_size=%s pause_s=%s resume=%r",
                iteration.field,
                iteration.direction.name,
                config.batch_size,
                config.pause_s,
                resume_value,
            )

            cursor = self._open_cursor(report)
            report.total = self._precompute_total(cursor, report)

            for document in cursor:
                value = resolve_path(document, iteration.field) if isinstance(document, Mapping) else None
                if _is_empty(value):
                    raise BatchRuntimeError(
                        "iterate",
                        f"data[{iteration.field}] cannot be empty",
                        field=iteration.field,
                        processed=report.processed,
                    )

                report.processed += 1
                callback(document, report.processed, report.total)

                if config.save_state:
                    coordinator.persist(value)

                if pacer.after(report.processed):
                    self.log.debug("Paused %.3fs after %s documents", pacer.pause_s, report.processed)

                if report.total is not None and report.total > 0 and report.processed >= report.total:
                    report.stop_reason = "count"
                    break
            else:
                limit_hit = config.limit is not None and report.processed >= config.limit
                report.stop_reason = "limit" if limit_hit else "exhausted"

            if config.clear_after:
                coordinator.clear()
        except BaseException:
            self._state = IteratorState.FAILED
            self.log.error(
                "Batch failed after %s documents (last checkpoint=%r)",
                report.processed,
                coordinator.last_checkpoint.value if coordinator.last_checkpoint else report.resumed_from,
            )
            raise
        finally:
            report.checkpoint_writes = coordinator.writes
            report.checkpoint_failures = coordinator.failures
            report.pauses = pacer.pauses
            report.elapsed_s = elapsed_since(started)
            report.finished_at_utc = utc_now_iso()

        self._state = IteratorState.COMPLETED
        self.log.info(
            "Batch done: processed=%s total=%s stop=%s checkpoints=%s checkpoint_failures=%s pauses=%s elapsed_s=%s",
            report.processed,
            report.total,
            report.stop_reason,
            report.checkpoint_writes,
            report.checkpoint_failures,
            report.pauses,
            report.elapsed_s,
        )
        return report

    def _open_cursor(self, report: BatchReport) -> Cursor:
        config = self.config
        iteration = config.validate_for_run()

        cursor = self.source.find(report.effective_filter, config.projection)
        if cursor is None:
            raise BatchRuntimeError("execute", "query source returned no cursor")

        cursor.disable_timeout()
        cursor.sort(iteration.field, iteration.direction)
        if config.limit is not None:
            cursor.limit(config.limit)
        return cursor

    def _precompute_total(self, cursor: Cursor, report: BatchReport) -> Optional[int]:
        config = self.config
        if not config.calc_count:
            return None

        iteration = config.validate_for_run()
        if not constrains_field(report.effective_filter, iteration.field) and report.effective_filter:
            # counting a filter that cannot use the iteration-field index scans the collection
            self.log.warning(
                "Precomputing count for a filter that does not constrain %s; disable count on large unindexed queries",
                iteration.field,
            )
        total = int(cursor.count())
        self.log.info("Documents to process: %s", total)
        return total
