"""PickupResponse aggregate: one resident's yes/no answer to one notification.

The id is ``{notification_id}_{customer_id}``, so a resident has at most one
response per notification and re-submitting updates it in place.
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from pickups.domain import pickups
from pickups.response.events import ResponseSubmitted


class ResponseValue(Enum):
    YES = "yes"
    NO = "no"


def response_id_for(notification_id: str, customer_id: str) -> str:
    return f"{notification_id}_{customer_id}"


def validate_value(value) -> str:
    if isinstance(value, str):
        try:
            return ResponseValue(value.strip().lower()).value
        except ValueError:
            pass
    raise ValidationError({"value": ["Response must be 'yes' or 'no'"]})


@pickups.aggregate
class PickupResponse:
    notification_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    value: String(required=True, choices=ResponseValue)
    responded_at: DateTime(required=True)
    updated_at: DateTime(required=True)

    @classmethod
    def submit(cls, notification_id: str, customer_id: str, value: str, now: datetime):
        response = cls(
            id=response_id_for(notification_id, customer_id),
            notification_id=notification_id,
            customer_id=customer_id,
            value=value,
            responded_at=now,
            updated_at=now,
        )
        response._announce(previous_value=None, now=now)
        return response

    def change(self, value: str, now: datetime) -> str:
        """Record a re-submission. Returns the value it replaces."""
        previous = self.value
        self.value = value
        self.updated_at = now
        if previous != value:
            self._announce(previous_value=previous, now=now)
        return previous

    def _announce(self, previous_value: str | None, now: datetime) -> None:
        self.raise_(
            ResponseSubmitted(
                response_id=self.id,
                notification_id=self.notification_id,
                customer_id=self.customer_id,
                value=self.value,
                previous_value=previous_value,
                submitted_at=now,
            )
        )
