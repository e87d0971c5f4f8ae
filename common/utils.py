from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque


def unix_now() -> int:
    """Current time in whole seconds since the epoch (cache entry mtime)."""
    return int(time.time())


def iso_now_ms() -> str:
    """UTC ISO-8601 timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RateTimer:
    """
    Sliding-window rate tracker for progress reporting.

    Usage:
        rt = RateTimer(window=50)
        for tile in tiles:
            # work...
            per_sec = rt.tick()
    """
    window: int = 50
    _times: Deque[float] = field(default_factory=deque, repr=False)

    def __post_init__(self) -> None:
        self._times = deque(maxlen=max(2, self.window))

    def tick(self) -> float:
        self._times.append(time.perf_counter())
        if len(self._times) < 2:
            return 0.0
        dt = (self._times[-1] - self._times[0]) / (len(self._times) - 1)
        return 0.0 if dt <= 0 else 1.0 / dt
