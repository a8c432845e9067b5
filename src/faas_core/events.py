"""Typed stream events and the channel that carries them to the client.

A producer coroutine writes events into a bounded :class:`EventChannel`; the
HTTP layer drains the channel into a server-sent-events response. Closing the
channel ends the stream.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from faas_core.observability import get_logger

logger = get_logger(__name__)

TERMINAL_TYPES = frozenset({"exit", "error", "done"})


@dataclass
class StreamEvent:
    """One event on a push stream: ``{"type": ..., "data": ...}``."""

    type: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting data when absent."""
        result: dict[str, Any] = {"type": self.type}
        if self.data is not None:
            result["data"] = self.data
        return result

    def encode(self) -> bytes:
        """Encode as a server-sent-events ``data:`` block."""
        return f"data: {json.dumps(self.to_dict())}\n\n".encode()


class EventChannel:
    """Bounded single-producer, single-consumer queue of stream events."""

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue(maxsize)
        self._closed = False
        self._detached = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        """True once the consumer has gone away and sends are discarded."""
        return self._detached

    async def send(self, type: str, data: Any = None) -> None:
        """Queue an event, waiting while the channel is full.

        Events sent after :meth:`detach` are discarded.

        Raises:
            RuntimeError: If the channel is already closed
        """
        if self._closed:
            raise RuntimeError("Cannot send on a closed channel")
        if self._detached:
            return
        await self._queue.put(StreamEvent(type=type, data=data))

    def detach(self) -> None:
        """Drop queued events and discard later sends; never blocks.

        Used when the consumer stops reading but the producer must finish.
        """
        self._detached = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def close(self) -> None:
        """Close the channel. Idempotent; never blocks."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # The consumer is busy draining and checks the flag once empty
            pass

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            if self._closed and self._queue.empty():
                return
            event = await self._queue.get()
            if event is None:
                return
            yield event


Producer = Callable[[EventChannel], Awaitable[None]]

# Producers left running after their consumer went away
_background: set[asyncio.Task[None]] = set()


def _finish_background(task: asyncio.Task[None]) -> None:
    _background.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Stream producer failed after client disconnect", error=error)


def background_producers() -> int:
    """Number of producers still running without a consumer."""
    return len(_background)


async def stream_from(
    producer: Producer,
    maxsize: int = 64,
    cancel_on_close: bool = True,
) -> AsyncIterator[StreamEvent]:
    """Run ``producer`` as a task and yield what it sends until it finishes.

    If the consumer stops early (client disconnect), the producer task is
    cancelled. With ``cancel_on_close=False`` it keeps running instead and
    its remaining events are discarded. An unexpected exception from the
    producer is re-raised after the events it did send have been yielded.
    """
    channel = EventChannel(maxsize)

    async def drive() -> None:
        try:
            await producer(channel)
        finally:
            channel.close()

    task = asyncio.create_task(drive())
    try:
        async for event in channel:
            yield event
        await task
    finally:
        if not task.done():
            if cancel_on_close:
                task.cancel()
            else:
                channel.detach()
                _background.add(task)
                task.add_done_callback(_finish_background)


async def collect(events: AsyncIterator[StreamEvent]) -> list[StreamEvent]:
    """Drain an event stream into a list."""
    return [event async for event in events]
