"""Fire-and-forget progress channel between the pipeline and its observers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from robotforge.models import EventKind, ProgressEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressSink(Protocol):
    """Receives progress events. Delivery is best-effort."""

    def publish(self, event: ProgressEvent) -> None:
        ...


class NullSink:
    """Discards every event."""

    def publish(self, event: ProgressEvent) -> None:
        pass


class CallbackSink:
    """Forwards every event to a plain callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._callback = callback

    def publish(self, event: ProgressEvent) -> None:
        self._callback(event)


class QueueSink:
    """Pushes events onto an asyncio queue for a consumer task.

    A full queue drops the event rather than blocking the pipeline.
    """

    def __init__(self, queue: asyncio.Queue[ProgressEvent] | None = None) -> None:
        self.queue: asyncio.Queue[ProgressEvent] = queue or asyncio.Queue()

    def publish(self, event: ProgressEvent) -> None:
        self.queue.put_nowait(event)


class LoggingSink:
    """Writes progress messages to the log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def publish(self, event: ProgressEvent) -> None:
        if event.kind is EventKind.PROGRESS:
            logger.log(self._level, "%s", event.message)
        else:
            logger.log(self._level, "%s: %s", event.kind.value, event.payload)


def emit(sink: ProgressSink | None, event: ProgressEvent) -> None:
    """Publish *event*, ignoring any failure in the sink."""
    if sink is None:
        return
    try:
        sink.publish(event)
    except Exception:  # noqa: BLE001
        logger.debug("Progress sink rejected %s event", event.kind.value, exc_info=True)
