"""In-process event bus with a producer/consumer surface shaped like Kafka's."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[None]]


class EventBus:
    """Dispatches published messages to the handlers subscribed to a topic."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> None:
        self._handlers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        handlers = self._handlers.get(topic)
        if handlers and handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(topic, None)

    async def publish(self, topic: str, message: dict[str, Any]) -> None:
        # copy: handlers may unsubscribe while being dispatched
        for handler in list(self._handlers.get(topic, ())):
            await handler(message)


_DEFAULT_BUS = EventBus()


def envelope(topic: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Wrap a payload with the event type and an occurrence timestamp."""

    return {
        "eventType": topic,
        "occurredAt": datetime.now(timezone.utc).isoformat(),
        **payload,
    }


class EventProducer:
    """Producer bound to an event bus; must be connected before sending."""

    def __init__(self, bus: EventBus | None = None, **_options: Any) -> None:
        self._bus = bus or _DEFAULT_BUS
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def send(self, topic: str, value: dict[str, Any]) -> None:
        if not self._connected:
            raise RuntimeError("Producer not connected")
        logger.debug("Publishing %s", topic)
        await self._bus.publish(topic, value)

    async def close(self) -> None:
        self._connected = False


class EventConsumer:
    """Subscribes a single ``(topic, message)`` handler to several topics."""

    def __init__(
        self,
        topics: Sequence[str],
        handler: Callable[[str, dict[str, Any]], Awaitable[None]],
        bus: EventBus | None = None,
    ) -> None:
        self._topics = list(topics)
        self._handler = handler
        self._bus = bus or _DEFAULT_BUS
        self._registrations: list[tuple[str, Handler]] = []

    async def start(self) -> None:
        if self._registrations:
            return
        for topic in self._topics:
            async def _dispatch(message: dict[str, Any], current_topic: str = topic) -> None:
                await self._handler(current_topic, message)

            self._bus.subscribe(topic, _dispatch)
            self._registrations.append((topic, _dispatch))

    async def stop(self) -> None:
        for topic, callback in self._registrations:
            self._bus.unsubscribe(topic, callback)
        self._registrations.clear()
