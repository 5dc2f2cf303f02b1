from __future__ import annotations

import importlib
import sys
from typing import Any, Callable, Mapping, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mongo_batch.config_models import BatchJobFile, load_and_validate_config
from mongo_batch.core.errors import BatchError
from mongo_batch.core.factory import ComponentFactory
from mongo_batch.core.models import BatchReport
from mongo_batch.utils.logging import get_logger, setup_logging

log = get_logger("mongo_batch.main")


def log_document(document: Mapping[str, Any], processed: int, total: Optional[int]) -> None:
    """Default callback: log each document with its position."""
    log.info("data: %s, current: %s, total: %s", dict(document), processed, total if total is not None else "unknown")


def resolve_callback(spec: str) -> Callable[..., Any]:
    """
    Resolve a ``module:function`` reference to a callable.

    Args:
        spec: Reference such as ``mypkg.handlers:on_document``.

    Returns:
        The resolved callable.
    """
    module_name, _, attr_path = spec.partition(":")
    target: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        target = getattr(target, attr)
    if not callable(target):
        raise TypeError(f"Callback '{spec}' is not callable")
    return target


def run_one(job_file: BatchJobFile, factory: Optional[ComponentFactory] = None) -> BatchReport:
    """Run a single batch job."""
    built = (factory or ComponentFactory()).build(job_file)
    callback = resolve_callback(job_file.job.callback)

    log.info("Job started: %s (%s)", job_file.job.name, job_file.job.id)
    report = built.iterator.run(callback)
    log.info("Job done: %s processed=%s stop=%s", job_file.job.id, report.processed, report.stop_reason)
    return report


def _run_scheduled_once(job_file: BatchJobFile) -> None:
    try:
        run_one(job_file)
    except BatchError as e:
        # keep the scheduler alive; the next tick resumes from the checkpoint
        log.error("Batch error: %s: %s", type(e).__name__, e)


def run_schedule(job_file: BatchJobFile) -> None:
    """Run a batch job repeatedly on an interval."""
    scheduler = BlockingScheduler()

    interval_hours = job_file.schedule.interval_hours
    trigger = IntervalTrigger(hours=interval_hours)

    scheduler.add_job(
        _run_scheduled_once,
        trigger=trigger,
        args=[job_file],
        id=f"batch_{job_file.job.id}",
        name=f"Scheduled batch: {job_file.job.name}",
    )

    log.info("Starting scheduled batch for job '%s' (every %s hours)", job_file.job.name, interval_hours)
    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("Scheduler stopped by user")


def main(argv: Optional[list] = None) -> None:
    """Main entry point: ``mongo-batch configs/jobs/<job>.yaml``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mongo-batch configs/jobs/<job>.yaml")
        raise SystemExit(2)

    setup_logging("configs/logging.yaml")
    job_path = args[0]
    log.info("Loading job from %s", job_path)

    try:
        job_file = load_and_validate_config(job_path)
        resolve_callback(job_file.job.callback)
    except (FileNotFoundError, ValueError, ImportError, AttributeError, TypeError) as e:
        log.error("%s", e)
        raise SystemExit(2)

    if job_file.schedule.enabled:
        run_schedule(job_file)
        return

    try:
        run_one(job_file)
    except BatchError as e:
        log.error("Batch error: %s: %s", type(e).__name__, e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
