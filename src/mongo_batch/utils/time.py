import time
from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Current UTC time in ISO format, second precision."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def elapsed_since(started: float) -> float:
    """Seconds elapsed since a ``time.perf_counter()`` reading, rounded to ms."""
    return round(time.perf_counter() - started, 3)
