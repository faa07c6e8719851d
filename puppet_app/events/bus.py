"""
Publish/subscribe channel for puppet lifecycle and inbound events.

Emitting never blocks or fails the emitter. Plain callables run inline and
their exceptions are logged, coroutine functions are scheduled as tasks on
the running loop, and queue subscribers receive an ``Event`` through
``put_nowait``.
"""

import asyncio
import inspect
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Union

import structlog

from ..logging.config import log_event_emission

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """One emitted event as delivered to queue subscribers."""
    name: str
    args: tuple


Handler = Callable[..., Any]
Subscriber = Union[Handler, "asyncio.Queue[Event]"]


class EventBus:
    """Fan-out of named events to any number of subscribers."""

    def __init__(self, name: str = "puppet"):
        self.name = name
        self.logger = logger.bind(bus=name)
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def on(self, event_name: str, handler: Handler) -> None:
        """Subscribe a callable or coroutine function to ``event_name``."""
        self._subscribers[str(event_name)].append(handler)

    def off(self, event_name: str, subscriber: Subscriber) -> None:
        """Remove a handler or queue; unknown subscribers are ignored."""
        subscribers = self._subscribers.get(str(event_name), [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)

    def subscribe(self, event_name: str, maxsize: int = 0) -> "asyncio.Queue[Event]":
        """Return a queue that receives every future ``event_name`` emission."""
        queue: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=maxsize)
        self._subscribers[str(event_name)].append(queue)
        return queue

    def listener_count(self, event_name: str) -> int:
        return len(self._subscribers.get(str(event_name), []))

    def emit(self, event_name: str, *args: Any) -> int:
        """
        Publish an event to every current subscriber.

        Returns:
            Number of subscribers the event was handed to
        """
        name = str(event_name)
        subscribers = list(self._subscribers.get(name, []))

        for subscriber in subscribers:
            if isinstance(subscriber, asyncio.Queue):
                try:
                    subscriber.put_nowait(Event(name=name, args=args))
                except asyncio.QueueFull:
                    self.logger.warning("Subscriber queue full, event dropped", event_name=name)
                continue

            if inspect.iscoroutinefunction(subscriber):
                task = asyncio.ensure_future(subscriber(*args))
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
                continue

            try:
                subscriber(*args)
            except Exception as e:
                self.logger.error(
                    "Event handler failed",
                    event_name=name,
                    error=str(e),
                    error_type=type(e).__name__
                )

        log_event_emission(self.logger, self.name, name, args, len(subscribers))
        return len(subscribers)

    async def drain(self) -> None:
        """Wait for every scheduled coroutine handler to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                "Event handler failed",
                error=str(error),
                error_type=type(error).__name__
            )
