"""Domain events for the PickupResponse aggregate."""

from protean.fields import DateTime, Identifier, String

from pickups.domain import pickups


@pickups.event(part_of="PickupResponse")
class ResponseSubmitted:
    """A resident answered, or changed their answer to, a pickup notification."""

    __version__ = 1

    response_id: Identifier(required=True)
    notification_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    value: String(required=True)
    previous_value: String()
    submitted_at: DateTime(required=True)
