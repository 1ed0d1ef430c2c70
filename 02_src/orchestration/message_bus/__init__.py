"""MessageBus module."""

from .message_bus import (
    DeliveryFailure,
    IMessageBus,
    InMemoryMessageBus,
    MessageHandler,
    Subscription,
    Unsubscribe,
    create_message_bus,
)

__all__ = [
    "DeliveryFailure",
    "IMessageBus",
    "InMemoryMessageBus",
    "MessageHandler",
    "Subscription",
    "Unsubscribe",
    "create_message_bus",
]
