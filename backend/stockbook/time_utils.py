from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Optional


def now_ms() -> int:
    """Wall-clock milliseconds since the epoch."""
    return int(time.time() * 1000)


class MonotonicClock:
    """
    Millisecond clock that never repeats or goes backwards within a process.

    Two calls in the same millisecond (or after a wall-clock step back) get
    last + 1, so timestamp order equals creation order.
    """

    def __init__(self, source=now_ms):
        self._source = source
        self._last = 0
        self._mutex = threading.Lock()

    def __call__(self) -> int:
        with self._mutex:
            ts = self._source()
            if ts <= self._last:
                ts = self._last + 1
            self._last = ts
            return ts


def parse_timestamp(value: Optional[str], default: int) -> int:
    """
    Parse a report bound into epoch milliseconds.

    - None / "" -> default
    - "1718000000000" -> int milliseconds
    - ISO-8601 ("2024-06-10T08:00:00Z", offsets, naive = UTC) -> milliseconds
    """
    if value is None:
        return default
    s = str(value).strip()
    if not s:
        return default
    if s.lstrip("-").isdigit():
        return int(s)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def to_utc_z(ts: Optional[int]) -> Optional[str]:
    """Serialize epoch milliseconds to ISO-8601 with trailing 'Z'."""
    if ts is None:
        return None
    dt = datetime.fromtimestamp(ts / 1000, tz=timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")
