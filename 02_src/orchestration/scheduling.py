"""Cancellable periodic tasks."""

import asyncio
from typing import Awaitable, Callable

from .logging_config import get_logger

logger = get_logger(__name__)


class Ticker:
    """Runs an async callback every `interval` seconds until stopped."""

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None]], name: str = "ticker"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start ticking. Must be called from a running loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def stop(self) -> None:
        """Stop ticking. Safe to call any number of times."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._interval)
                await self._callback()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Ticker %s error: %s", self._name, e, exc_info=True)
