"""Push fanout port (abstract interface).

Defines the contract every push adapter implements: broadcast to a topic and
add/remove a device token from a topic. Each call reports its own outcome; an
adapter never raises for a delivery or subscription failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


def topic_for_ward(ward_number: int) -> str:
    """Topic name every resident of a ward subscribes to."""
    return f"ward_{ward_number}"


@dataclass(frozen=True)
class FanoutMessage:
    """A push message addressed to every subscriber of one topic."""

    topic: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a topic broadcast."""

    success: bool
    delivery_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class SubscriptionResult:
    """Result of a subscribe or unsubscribe call."""

    success: bool
    error: str | None = None


class FanoutPort(ABC):
    """Abstract push fanout interface."""

    @abstractmethod
    def send(self, message: FanoutMessage) -> DeliveryResult:
        """Deliver ``message`` to all current subscribers of its topic."""
        ...

    @abstractmethod
    def subscribe(self, token: str, topic: str) -> SubscriptionResult:
        """Add a device token to a topic."""
        ...

    @abstractmethod
    def unsubscribe(self, token: str, topic: str) -> SubscriptionResult:
        """Remove a device token from a topic."""
        ...
