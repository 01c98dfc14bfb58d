"""Server-push event channel for streaming generations.

A streaming request is served by two cooperating halves:

- **Producer** — a background :class:`asyncio.Task` (the Deep Thinking
  pipeline or a direct adapter call) that owns an :class:`EventSink` and
  pushes :class:`ThinkingEvent` values into it.
- **Consumer** — :func:`stream_events`, the async generator handed to
  FastAPI's ``StreamingResponse``.  It drains the sink, frames each event as
  Server-Sent Events, and enforces the connection deadline.

Event Types
-----------
========  ==========================================  =========
Type      Payload                                     Terminal
========  ==========================================  =========
log       latest thinking-log line (plain text)       no
sketch    base64 sketch image, sent once              no
result    JSON ``{imageData, sketchImage, thinkingLog}``  yes
error     failure message (plain text)                yes
========  ==========================================  =========

Exactly one terminal event is delivered per stream.  The sink refuses any
event after a terminal one, and after it has been closed by the consumer
(client disconnect or deadline expiry).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from voidweaver.core.errors import VoidWeaverError

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    LOG = "log"
    SKETCH = "sketch"
    RESULT = "result"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.RESULT, EventType.ERROR)


@dataclass(frozen=True, slots=True)
class ThinkingEvent:
    type: EventType
    data: str

    @classmethod
    def log(cls, line: str) -> ThinkingEvent:
        return cls(EventType.LOG, line)

    @classmethod
    def sketch(cls, image_data: str) -> ThinkingEvent:
        return cls(EventType.SKETCH, image_data)

    @classmethod
    def result(cls, payload: dict[str, Any]) -> ThinkingEvent:
        return cls(EventType.RESULT, json.dumps(payload, ensure_ascii=False))

    @classmethod
    def error(cls, message: str) -> ThinkingEvent:
        return cls(EventType.ERROR, message)

    def encode(self) -> bytes:
        """Frame the event for ``text/event-stream``.

        Every line of the payload gets its own ``data:`` field so multi-line
        log entries survive the SSE line protocol.
        """
        lines = self.data.splitlines() or [""]
        body = "".join(f"data: {line}\n" for line in lines)
        return f"event: {self.type.value}\n{body}\n".encode("utf-8")


class EventSink:
    """Single-producer, single-consumer queue of :class:`ThinkingEvent`.

    The producer calls :meth:`log`, :meth:`sketch`, then exactly one of
    :meth:`complete` or :meth:`fail`.  The consumer awaits :meth:`next_event`
    and calls :meth:`close` when it stops reading.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ThinkingEvent] = asyncio.Queue()
        self._terminated = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        return self._terminated

    def emit(self, event: ThinkingEvent) -> bool:
        """Queue *event*.  Returns ``False`` if the sink no longer accepts events."""
        if self._closed or self._terminated:
            logger.debug(f"Dropping '{event.type.value}' event on finished stream")
            return False
        self._queue.put_nowait(event)
        if event.type.is_terminal:
            self._terminated = True
        return True

    def log(self, line: str) -> bool:
        return self.emit(ThinkingEvent.log(line))

    def sketch(self, image_data: str) -> bool:
        return self.emit(ThinkingEvent.sketch(image_data))

    def complete(self, payload: dict[str, Any]) -> bool:
        return self.emit(ThinkingEvent.result(payload))

    def fail(self, error: VoidWeaverError) -> bool:
        return self.emit(ThinkingEvent.error(error.message))

    def close(self) -> None:
        self._closed = True

    async def next_event(self) -> ThinkingEvent:
        return await self._queue.get()


async def stream_events(
    sink: EventSink,
    producer: asyncio.Task[Any],
    *,
    expires_at: float,
) -> AsyncIterator[bytes]:
    """Drain *sink* as SSE frames until a terminal event or the deadline.

    Args:
        sink: The request's event sink.
        producer: Task feeding *sink*; cancelled if the stream ends early.
        expires_at: :func:`time.monotonic` timestamp of the hard deadline,
            computed when the request was accepted.

    Yields:
        Encoded SSE frames.  The last frame is always a terminal event,
        unless the client disconnected first.
    """
    try:
        while True:
            remaining = expires_at - time.monotonic()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError
                event = await asyncio.wait_for(sink.next_event(), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("Streaming generation hit its deadline, cancelling")
                sink.close()
                producer.cancel()
                yield ThinkingEvent.error("Generation timed out before completing").encode()
                return

            yield event.encode()
            if event.type.is_terminal:
                return
    finally:
        sink.close()
        if not producer.done():
            logger.info("Stream consumer went away, cancelling generation task")
            producer.cancel()
