"""AuditLog aggregate: append-only record of administrative actions.

Entries are written in the same unit of work as the change they describe.
"""

from datetime import datetime
from enum import Enum

from protean.fields import DateTime, Dict, Identifier, String

from pickups.domain import pickups


class AuditAction(Enum):
    NOTIFICATION_CREATED = "NOTIFICATION_CREATED"
    PICKUP_RESCHEDULED = "PICKUP_RESCHEDULED"
    PICKUP_CANCELLED = "PICKUP_CANCELLED"
    RESPONSE_DELETED = "RESPONSE_DELETED"
    COUNTERS_RECONCILED = "COUNTERS_RECONCILED"


@pickups.aggregate
class AuditLog:
    action: String(required=True, choices=AuditAction, max_length=50)
    actor_id: String(required=True, max_length=255)
    target_id: Identifier()
    details: Dict()
    recorded_at: DateTime(required=True)

    @classmethod
    def record(cls, action: AuditAction, actor_id: str, target_id, now: datetime, **details):
        return cls(
            action=action.value,
            actor_id=actor_id,
            target_id=target_id,
            details={key: _plain(value) for key, value in details.items()},
            recorded_at=now,
        )


def _plain(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value
