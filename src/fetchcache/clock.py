"""Wall-clock helper shared by the coordinator and the stores."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


def now_ms() -> float:
    """Return the current time in milliseconds since the Unix epoch."""
    return time.time() * 1000
