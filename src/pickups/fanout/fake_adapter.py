"""Configurable in-memory fanout for development and testing.

Tracks topic membership and every call made, and can be told to fail sends,
subscribes or unsubscribes independently.
"""

from collections import defaultdict
from uuid import uuid4

from pickups.fanout.port import DeliveryResult, FanoutMessage, FanoutPort, SubscriptionResult


class FakeFanout(FanoutPort):
    """Configurable fake push fanout."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.sent: list[FanoutMessage] = []
        self.topics: dict[str, set[str]] = defaultdict(set)
        self.configure()

    def configure(
        self,
        send_succeeds: bool = True,
        subscribe_succeeds: bool = True,
        unsubscribe_succeeds: bool = True,
        failure_reason: str = "Fanout unavailable",
    ) -> None:
        """Configure adapter behavior at runtime."""
        self.send_succeeds = send_succeeds
        self.subscribe_succeeds = subscribe_succeeds
        self.unsubscribe_succeeds = unsubscribe_succeeds
        self.failure_reason = failure_reason

    def reset(self) -> None:
        self.calls.clear()
        self.sent.clear()
        self.topics.clear()
        self.configure()

    def subscribers(self, topic: str) -> set[str]:
        return set(self.topics.get(topic, set()))

    def calls_for(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def send(self, message: FanoutMessage) -> DeliveryResult:
        self.calls.append({"method": "send", "topic": message.topic, "title": message.title, "data": dict(message.data)})

        if not self.send_succeeds:
            return DeliveryResult(success=False, error=self.failure_reason)

        self.sent.append(message)
        return DeliveryResult(success=True, delivery_id=f"fake_msg_{uuid4().hex[:12]}")

    def subscribe(self, token: str, topic: str) -> SubscriptionResult:
        self.calls.append({"method": "subscribe", "token": token, "topic": topic})

        if not self.subscribe_succeeds:
            return SubscriptionResult(success=False, error=self.failure_reason)

        self.topics[topic].add(token)
        return SubscriptionResult(success=True)

    def unsubscribe(self, token: str, topic: str) -> SubscriptionResult:
        self.calls.append({"method": "unsubscribe", "token": token, "topic": topic})

        if not self.unsubscribe_succeeds:
            return SubscriptionResult(success=False, error=self.failure_reason)

        self.topics[topic].discard(token)
        return SubscriptionResult(success=True)
