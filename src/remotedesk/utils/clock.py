"""Wall-clock helpers.

Every stored timestamp is an integer count of milliseconds since the
Unix epoch, so records written by different workers compare directly.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000
