"""
PURPOSE: Epoch-millisecond helpers used for signal timestamps and rate limit windows.
"""

import time

from aviator_signals.config.constants import RATE_LIMIT_WINDOW_MS


def now_ms() -> int:
    """
    PURPOSE: Return the current wall-clock time as integer epoch milliseconds.

    Returns:
        int: Milliseconds since the Unix epoch.
    """
    return int(time.time() * 1000)


def window_start(ts_ms: int, window_ms: int = RATE_LIMIT_WINDOW_MS) -> int:
    """
    PURPOSE: Floor a timestamp to the start of its fixed window.

    Args:
        ts_ms: Timestamp in epoch milliseconds.
        window_ms: Window length in milliseconds (default one minute).

    Returns:
        int: Epoch milliseconds of the window's first instant.
    """
    return ts_ms - (ts_ms % window_ms)
