"""MessageBus implementation for filtered pub/sub messaging."""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models import Message, MessageBrokerConfig, MessageFilter
from ..storage import IStorage

logger = get_logger(__name__)


MessageHandler = Callable[[Message], Awaitable[None]]
Unsubscribe = Callable[[], bool]


@dataclass(frozen=True)
class Subscription:
    """A handler registered for messages matching a filter."""

    id: str
    subscriber_id: str
    handler: MessageHandler
    filter: MessageFilter


@dataclass(frozen=True)
class DeliveryFailure:
    """A subscriber handler that raised while handling a message."""

    subscriber_id: str
    subscription_id: str
    error: BaseException


class IMessageBus(Protocol):
    """Transport for inter-agent messages."""

    def subscribe(
        self,
        subscriber_id: str,
        handler: MessageHandler,
        message_filter: MessageFilter | None = None,
    ) -> Unsubscribe:
        """Subscribe a handler; returns a callable that removes it."""
        ...

    async def publish(self, message: Message) -> list[DeliveryFailure]:
        """Deliver to every matching subscriber concurrently."""
        ...

    async def close(self) -> None:
        """Drop all subscriptions and release backend resources."""
        ...


class InMemoryMessageBus:
    """In-memory pub/sub message bus."""

    def __init__(self, storage: IStorage | None = None):
        self._storage = storage
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(
        self,
        subscriber_id: str,
        handler: MessageHandler,
        message_filter: MessageFilter | None = None,
    ) -> Unsubscribe:
        """Subscribe a handler; returns a callable that removes it."""
        subscription = Subscription(
            id=f"sub_{uuid.uuid4()}",
            subscriber_id=subscriber_id,
            handler=handler,
            filter=message_filter or MessageFilter(),
        )
        self._subscriptions[subscription.id] = subscription
        logger.debug(
            "%s subscribed (%s) with filter %s",
            subscriber_id,
            subscription.id,
            subscription.filter,
        )

        def unsubscribe() -> bool:
            return self.unsubscribe(subscription.id)

        return unsubscribe

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if it was already gone."""
        return self._subscriptions.pop(subscription_id, None) is not None

    def subscriptions(self, subscriber_id: str | None = None) -> list[Subscription]:
        """List subscriptions, optionally for one subscriber."""
        return [
            sub
            for sub in self._subscriptions.values()
            if subscriber_id is None or sub.subscriber_id == subscriber_id
        ]

    async def publish(self, message: Message) -> list[DeliveryFailure]:
        """Deliver to every matching subscriber concurrently, persist to Storage."""
        matching = [
            sub for sub in list(self._subscriptions.values()) if sub.filter.matches(message)
        ]

        failures: list[DeliveryFailure] = []
        if matching:
            results = await asyncio.gather(
                *[sub.handler(message) for sub in matching],
                return_exceptions=True,
            )

            # Log any exceptions
            for sub, result in zip(matching, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in handler %s of %s: %s",
                        sub.id,
                        sub.subscriber_id,
                        result,
                    )
                    failures.append(
                        DeliveryFailure(
                            subscriber_id=sub.subscriber_id,
                            subscription_id=sub.id,
                            error=result,
                        )
                    )

        # Persist to storage
        if self._storage is not None:
            try:
                await self._storage.save_bus_message(message)
            except Exception as e:
                logger.error("Failed to persist message %s: %s", message.id, e)

        return failures

    async def close(self) -> None:
        """Drop all subscriptions."""
        self._subscriptions.clear()


def create_message_bus(
    config: MessageBrokerConfig, storage: IStorage | None = None
) -> IMessageBus:
    """Build the bus backend selected by configuration."""
    if config.type == "in-memory":
        return InMemoryMessageBus(storage)
    raise ConfigurationError(
        f"Message broker type '{config.type}' is not supported by this build",
        {"type": config.type, "endpoint": config.endpoint},
    )
