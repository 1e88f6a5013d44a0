"""
PURPOSE: Tests for epoch-millisecond helpers.
"""

import time

from aviator_signals.utils.time_utils import now_ms, window_start


class TestNowMs:
    def test_integer_milliseconds(self):
        before = int(time.time() * 1000)
        value = now_ms()
        after = int(time.time() * 1000)

        assert isinstance(value, int)
        assert before <= value <= after


class TestWindowStart:
    """Test fixed-window flooring."""

    def test_floors_to_minute(self):
        assert window_start(1_700_000_059_999) == 1_700_000_040_000

    def test_boundary_starts_new_window(self):
        assert window_start(1_700_000_100_000) == 1_700_000_100_000

    def test_custom_window(self):
        assert window_start(12_345, window_ms=1_000) == 12_000
