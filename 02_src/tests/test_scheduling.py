"""Tests for Ticker."""

import asyncio

import pytest

from orchestration.scheduling import Ticker


class TestTicker:
    """Tests for the periodic task runner."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            Ticker(0, lambda: None)

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self):
        calls = []

        async def tick():
            calls.append(1)

        ticker = Ticker(0.01, tick)
        ticker.start()
        await asyncio.sleep(0.05)
        ticker.stop()
        count = len(calls)
        await asyncio.sleep(0.03)

        assert count >= 1
        assert len(calls) == count
        assert ticker.running is False

    @pytest.mark.asyncio
    async def test_callback_error_keeps_ticking(self):
        """Test that an exception in one tick does not end the loop."""
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        ticker = Ticker(0.01, flaky)
        ticker.start()
        await asyncio.sleep(0.06)
        ticker.stop()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        async def tick():
            pass

        ticker = Ticker(10, tick)
        ticker.start()
        ticker.stop()
        ticker.stop()

        assert ticker.running is False
