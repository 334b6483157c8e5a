from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable

import structlog

from ..core.config import EventSettings
from ..core.logging import get_logger
from ..schemas.events import CoordinationEvent

logger = get_logger(name=__name__)

Subscriber = Callable[[CoordinationEvent], Awaitable[None] | None]


def _is_async(subscriber: Subscriber) -> bool:
    return inspect.iscoroutinefunction(subscriber) or inspect.iscoroutinefunction(
        getattr(subscriber, "__call__", None)
    )


class EventBus:
    """Fans coordination events out to observability subscribers.

    ``publish`` only enqueues. A delivery worker drains the queue in publish
    order, handing each event to every subscriber concurrently; sync
    subscribers run in a worker thread. Each delivery is bounded by a timeout
    and failures are logged, so subscribers never stall or fail a plan.
    """

    def __init__(self, *, enabled: bool = True, subscriber_timeout_seconds: float = 2.0) -> None:
        self._enabled = enabled
        self._timeout = subscriber_timeout_seconds
        self._subscribers: list[Subscriber] = []
        self._queue: asyncio.Queue[CoordinationEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: EventSettings) -> "EventBus":
        return cls(enabled=settings.enabled, subscriber_timeout_seconds=settings.subscriber_timeout_seconds)

    @property
    def subscribers(self) -> tuple[Subscriber, ...]:
        return tuple(self._subscribers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def subscribe(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def publish(self, event: CoordinationEvent) -> None:
        if not self._enabled or not self._subscribers:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._queue.put_nowait(event)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._deliver_pending())
            self._worker.add_done_callback(self._on_worker_done)

    async def drain(self) -> None:
        """Wait until every event published so far has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    async def _deliver_pending(self) -> None:
        assert self._queue is not None
        # Worker tasks inherit the publishing run's log context; deliveries span runs.
        structlog.contextvars.clear_contextvars()
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await asyncio.gather(*(self._safe_invoke(subscriber, event) for subscriber in list(self._subscribers)))
            finally:
                self._queue.task_done()

    def _on_worker_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("event_delivery_failed", error=str(exc))

    async def _safe_invoke(self, subscriber: Subscriber, event: CoordinationEvent) -> None:
        name = getattr(subscriber, "__qualname__", type(subscriber).__qualname__)
        try:
            if _is_async(subscriber):
                await asyncio.wait_for(subscriber(event), timeout=self._timeout)  # type: ignore[arg-type]
            else:
                await asyncio.wait_for(asyncio.to_thread(subscriber, event), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("event_subscriber_timeout", subscriber=name, event_type=event.type, timeout=self._timeout)
        except Exception as exc:
            logger.warning("event_subscriber_failed", subscriber=name, event_type=event.type, error=str(exc))


__all__ = ["EventBus", "Subscriber"]
