"""
Lifecycle Events
Observer plumbing for message processing
"""

import asyncio
import inspect
from typing import Awaitable, Callable, List, Optional, Union

from loguru import logger

from .types import EventKind, LifecycleEvent

EventCallback = Callable[[LifecycleEvent], Union[None, Awaitable[None]]]


class EventDispatcher:
    """
    Delivers the events of one submission to its observer

    Sync observers run inline. Awaitables returned by async observers are
    queued and awaited one at a time by a consumer task, so delivery keeps
    emit order and never holds up the caller. Observer failures are logged.
    """

    def __init__(self, on_event: Optional[EventCallback], drain_timeout: float = 0.5):
        """
        Initialize Event Dispatcher

        Args:
            on_event: Observer (sync or async callable), or None
            drain_timeout: Seconds close() waits for queued deliveries
        """
        self.on_event = on_event
        self.drain_timeout = drain_timeout
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None

    def emit(self, event: LifecycleEvent):
        """Hand an event to the observer without waiting for it"""
        if self.on_event is None:
            return

        try:
            result = self.on_event(event)
        except Exception as e:
            logger.warning(f"Event observer failed on {event.kind.value}: {e}")
            return

        if inspect.isawaitable(result):
            if self._consumer is None:
                self._queue = asyncio.Queue()
                self._consumer = asyncio.create_task(self._drain())
            self._queue.put_nowait((event, result))

    async def _drain(self):
        while True:
            event, pending = await self._queue.get()
            try:
                await pending
            except Exception as e:
                logger.warning(f"Event observer failed on {event.kind.value}: {e}")
            finally:
                self._queue.task_done()

    async def close(self):
        """Wait up to drain_timeout for queued deliveries, then drop the rest"""
        if self._consumer is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Event observer still busy after {self.drain_timeout}s - "
                f"dropping {self._queue.qsize()} queued event(s)"
            )
        finally:
            self._consumer.cancel()
            while not self._queue.empty():
                _, pending = self._queue.get_nowait()
                close = getattr(pending, 'close', None)
                if close is not None:
                    close()
            self._consumer = None


def log_event(event: LifecycleEvent):
    """Stock observer: writes every event to the log"""
    details = f"{event.kind.value} [{event.state.value}] message={event.message_id} address={event.address}"

    if event.block_number is not None:
        details += f" block={event.block_number}"

    if event.kind in (EventKind.SEND_FAILED, EventKind.FETCH_NEXT_BLOCK_FAILED, EventKind.MESSAGE_EXPIRED):
        logger.warning(f"{details} error={event.error}")
    else:
        logger.info(details)


class EventRecorder:
    """Collects events, for callers that want to inspect them afterwards"""

    def __init__(self):
        self.events: List[LifecycleEvent] = []

    def __call__(self, event: LifecycleEvent):
        self.events.append(event)

    @property
    def kinds(self) -> List[EventKind]:
        return [e.kind for e in self.events]
