"""In-process stand-ins for the Kafka producer/consumer used by the service.

Messages are delivered synchronously to subscribers of the same process. Each
message carries an optional key (the payment intent id for status updates) so
that ordering per key matches what a partitioned topic would provide.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

_LOGGER = logging.getLogger(__name__)

MessageHandler = Callable[[str, "BusMessage"], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class BusMessage:
    topic: str
    key: str | None
    value: dict[str, Any]


class _InMemoryBroker:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[MessageHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: MessageHandler) -> None:
        handlers = self._subscribers.get(topic)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                self._subscribers.pop(topic, None)

    async def publish(self, message: BusMessage) -> None:
        # Copy: handlers may unsubscribe while being called.
        for handler in list(self._subscribers.get(message.topic, [])):
            await handler(message.topic, message)


_BROKER = _InMemoryBroker()


class KafkaProducerStub:
    """Producer with the connect/send/close lifecycle of an async Kafka client."""

    def __init__(self, *, bootstrap_servers: str | None = None) -> None:
        self.bootstrap_servers = bootstrap_servers
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self.bootstrap_servers:
            _LOGGER.info("Event bus bootstrap servers %s configured; using in-process delivery", self.bootstrap_servers)
        self._connected = True

    async def send(self, topic: str, value: dict[str, Any], *, key: str | None = None) -> None:
        if not self._connected:
            raise RuntimeError("Producer not connected")
        await _BROKER.publish(BusMessage(topic=topic, key=key, value=value))

    async def close(self) -> None:
        self._connected = False


class KafkaConsumerStub:
    """Subscribes a single handler to a set of topics."""

    def __init__(self, topics: Sequence[str], handler: MessageHandler) -> None:
        self._topics = list(topics)
        self._handler = handler
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        for topic in self._topics:
            _BROKER.subscribe(topic, self._handler)
        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return
        for topic in self._topics:
            _BROKER.unsubscribe(topic, self._handler)
        self._started = False
