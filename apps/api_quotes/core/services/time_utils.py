import time
from typing import Dict

from ..domain.exceptions import InvalidInput

TIME_RANGES_MS: Dict[str, int] = {
    "1h": 60 * 60 * 1000,
    "24h": 24 * 60 * 60 * 1000,
    "7d": 7 * 24 * 60 * 60 * 1000,
    "30d": 30 * 24 * 60 * 60 * 1000,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def since_for_range(time_range: str, now: int) -> int:
    """
    "24h" -> epoch ms 24 hours before `now`.
    """
    window = TIME_RANGES_MS.get(time_range)
    if window is None:
        raise InvalidInput(f"time_range must be one of {sorted(TIME_RANGES_MS)}")
    return now - window
