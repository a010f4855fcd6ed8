"""Wall-clock helpers and timestamped log line formatting."""

from __future__ import annotations

import time

_US_PER_SECOND = 1_000_000
_US_PER_MILLISECOND = 1_000


def system_time_us(clock: int = 0) -> int:
    """Return the current wall-clock time in microseconds.

    The ``clock`` selector is accepted for compatibility and ignored: the
    time of day is always used.
    """
    del clock
    return time.time_ns() // 1_000


def elapsed_millis_since_boot() -> int:
    """Return the current time in milliseconds, taken from :func:`system_time_us`."""
    return system_time_us(0) // _US_PER_MILLISECOND


def timestamped_line(message: str, now: int | None = None) -> str:
    """Prefix ``message`` with an ``HH:MM:SS.uuuuuu]`` time of day.

    ``now`` is a time in microseconds since the epoch; the current time is
    used when it is omitted. The returned line ends with a newline.
    """
    if now is None:
        now = system_time_us(0)
    seconds, micros = divmod(now, _US_PER_SECOND)
    hours = seconds // 3600 % 24
    minutes = seconds % 3600 // 60
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{micros:06d}]{message}\n"