"""
Events posted by background operations and the single-consumer channel that
carries them to the presentation layer.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class Stage(str, Enum):
    REFRESH = "refresh"
    DOWNLOAD = "download"
    COUNT = "count"
    EXTRACT = "extract"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class StatusEvent:
    """A human-readable status line."""

    message: str
    stage: Stage | None = None


@dataclass(frozen=True)
class ProgressEvent:
    """
    A progress tick for one stage.

    `percent` is None when the total is unknown (indeterminate progress).
    For downloads `done`/`total` are bytes, for extraction they are entries.
    """

    stage: Stage
    percent: float | None
    done: int
    total: int | None = None

    @property
    def indeterminate(self) -> bool:
        return self.percent is None


@dataclass(frozen=True)
class OutcomeEvent:
    """The single terminal event of an operation."""

    stage: Stage
    status: OutcomeStatus
    message: str
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


Event = StatusEvent | ProgressEvent | OutcomeEvent

_CLOSED = object()


class EventChannel:
    """
    A multi-producer, single-consumer queue of events.

    `post` may be called from the event loop or from worker threads; events
    posted by one producer are delivered in the order they were posted.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._queue: asyncio.Queue | None = None
        self._closed = False

    def bind(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attaches the channel to the running (or given) event loop."""
        if self._queue is not None:
            return
        self._loop = loop or self._loop or asyncio.get_running_loop()
        self._queue = asyncio.Queue()

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, item) -> None:
        if self._queue is None:
            self.bind()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def post(self, event: Event) -> None:
        if self._closed:
            log.debug(f"Dropping event posted after close: {event!r}")
            return
        self._put(event)

    def close(self) -> None:
        """Ends the stream; the consumer stops after draining queued events."""
        if self._closed:
            return
        self._closed = True
        self._put(_CLOSED)

    def drain(self) -> int:
        """Discards the events queued so far and returns how many were dropped."""
        dropped = 0
        if self._queue is None:
            return dropped
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            if item is _CLOSED:
                self._queue.put_nowait(item)
                return dropped
            dropped += 1

    async def get(self) -> Event | None:
        """Returns the next event, or None once the channel is closed and drained."""
        if self._queue is None:
            self.bind()
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
