from __future__ import annotations

import time
from typing import Callable


class Pacer:
    """Suspends the loop for ``pause_s`` after every ``every`` records."""

    def __init__(self, every: int, pause_s: float, sleep: Callable[[float], None] = time.sleep):
        self.every = max(1, int(every))
        self.pause_s = max(0.0, float(pause_s))
        self._sleep = sleep
        self.pauses = 0

    @property
    def enabled(self) -> bool:
        return self.pause_s > 0

    def due(self, processed: int) -> bool:
        return self.enabled and processed > 0 and processed % self.every == 0

    def after(self, processed: int) -> bool:
        """Sleep if ``processed`` closes a batch. Returns True if it slept."""
        if not self.due(processed):
            return False
        self._sleep(self.pause_s)
        self.pauses += 1
        return True
