from __future__ import annotations

import asyncio
from collections.abc import Callable

from livestream_clipper.domain.models import NotificationEnvelope
from livestream_clipper.utils.logger import get_logger

Subscriber = Callable[[NotificationEnvelope], object]


class NotificationHub:
    """In-process fan-out of notification envelopes.

    Subscribers are plain callables or asyncio queues. A subscriber that
    raises is logged and skipped; the rest still receive the envelope.
    """

    def __init__(self, logger=None) -> None:
        self.logger = logger or get_logger()
        self._callbacks: list[Subscriber] = []
        self._queues: list[asyncio.Queue[NotificationEnvelope]] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def subscribe_queue(self, maxsize: int = 0) -> asyncio.Queue[NotificationEnvelope]:
        queue: asyncio.Queue[NotificationEnvelope] = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def unsubscribe_queue(self, queue: asyncio.Queue[NotificationEnvelope]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, envelope: NotificationEnvelope) -> None:
        self.logger.debug(
            "notify.publish",
            type=envelope.type,
            session_id=envelope.session_id,
            envelope_id=envelope.id,
        )
        for callback in list(self._callbacks):
            try:
                callback(envelope)
            except Exception as exc:
                self.logger.warning("notify.subscriber_failed", type=envelope.type, error=str(exc))
        for queue in list(self._queues):
            try:
                queue.put_nowait(envelope)
            except asyncio.QueueFull:
                self.logger.warning("notify.queue_full", type=envelope.type, session_id=envelope.session_id)
