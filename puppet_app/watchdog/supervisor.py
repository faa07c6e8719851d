"""
Liveness watchdog for puppet sessions.

The watchdog expects to be fed periodically. When no food arrives within the
timeout it fires its reset callbacks with the last food it received and goes
back to sleep until the next feed.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from ..logging.config import get_watchdog_logger, log_watchdog_reset

watchdog_logger = get_watchdog_logger(__name__)

ResetCallback = Callable[["WatchdogFood"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class WatchdogFood:
    """One liveness signal."""
    kind: str
    data: Optional[Any] = None
    timeout_seconds: Optional[float] = None


class Watchdog:
    """Timer-based liveness supervisor running on the current asyncio loop."""

    def __init__(self, timeout_seconds: float, name: str = "watchdog"):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")

        self.timeout_seconds = timeout_seconds
        self.name = name
        self.logger = watchdog_logger.bind(watchdog=name)

        self.last_food: Optional[WatchdogFood] = None
        self.last_feed_at: Optional[float] = None

        self._timer: Optional[asyncio.TimerHandle] = None
        self._callbacks: list[ResetCallback] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_awake(self) -> bool:
        """True while a reset timer is armed."""
        return self._timer is not None

    def on_reset(self, callback: ResetCallback) -> None:
        """Register a callback fired with the last food when a feed is missed."""
        self._callbacks.append(callback)

    def feed(self, food: WatchdogFood) -> float:
        """
        Feed the watchdog and re-arm its timer.

        Must be called from a coroutine or callback on the running loop.

        Returns:
            Seconds elapsed since the previous feed (0.0 for the first one)
        """
        now = time.monotonic()
        elapsed = now - self.last_feed_at if self.last_feed_at is not None else 0.0

        self.last_food = food
        self.last_feed_at = now

        timeout = food.timeout_seconds or self.timeout_seconds
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(timeout, self._expire)

        self.logger.debug(
            "Watchdog fed",
            food=food.kind,
            timeout_seconds=timeout,
            elapsed_seconds=round(elapsed, 3)
        )
        return elapsed

    def sleep(self) -> None:
        """Disarm the timer; no reset fires until the next feed."""
        if self._timer is not None:
            self.logger.debug("Watchdog sleeping")
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        food = self.last_food or WatchdogFood(kind="none")

        log_watchdog_reset(
            self.logger,
            watchdog=self.name,
            last_food=food.kind,
            timeout_seconds=food.timeout_seconds or self.timeout_seconds,
            silent_seconds=(
                time.monotonic() - self.last_feed_at
                if self.last_feed_at is not None else None
            ),
        )

        for callback in list(self._callbacks):
            result = callback(food)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
