"""PickupNotification aggregate: one scheduled pickup announcement for a ward.

State machine:
    scheduled → sent (fanout ok) | failed (fanout error) | cancelled (admin)
    sent → cancelled (admin cancel or reschedule) | completed (time elapsed)
    failed, cancelled, completed are terminal.

``response_stats.total_customers`` is a snapshot of the ward's customer count
taken at creation and refreshed once at send time; it is never recomputed
live. The yes/no counters only move through ``record_response_change`` and
are clamped at zero.
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text, ValueObject

from pickups.domain import pickups
from pickups.errors import InvalidStateError
from pickups.notification.events import (
    NotificationCancelled,
    NotificationCompleted,
    NotificationCreated,
    NotificationDeliveryFailed,
    NotificationRescheduled,
    NotificationSent,
)

MIN_MESSAGE_LENGTH = 10
MAX_MESSAGE_LENGTH = 1000


class NotificationStatus(Enum):
    SCHEDULED = "scheduled"
    SENT = "sent"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    NotificationStatus.SCHEDULED: {NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.CANCELLED},
    NotificationStatus.SENT: {NotificationStatus.CANCELLED, NotificationStatus.COMPLETED},
    NotificationStatus.COMPLETED: set(),  # Terminal
    NotificationStatus.CANCELLED: set(),  # Terminal
    NotificationStatus.FAILED: set(),  # Terminal
}


def validate_message(text, field_name: str = "message_text") -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError({field_name: ["Message text is required"]})
    if len(text) < MIN_MESSAGE_LENGTH:
        raise ValidationError({field_name: [f"Message must be at least {MIN_MESSAGE_LENGTH} characters"]})
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError({field_name: [f"Message must be at most {MAX_MESSAGE_LENGTH} characters"]})
    return text


@pickups.value_object(part_of="PickupNotification")
class MessageText:
    """Announcement text in the default and alternate (Nepali) language."""

    default: Text(required=True)
    alt: Text()


@pickups.value_object(part_of="PickupNotification")
class ResponseStats:
    """Denormalized yes/no tallies and the audience-size snapshot."""

    yes_count: Integer(default=0, min_value=0)
    no_count: Integer(default=0, min_value=0)
    total_customers: Integer(default=0, min_value=0)

    @property
    def responded(self) -> int:
        return (self.yes_count or 0) + (self.no_count or 0)

    @property
    def response_rate(self) -> float:
        """Percentage of the audience that answered, one decimal place."""
        if not self.total_customers:
            return 0.0
        return round(self.responded / self.total_customers * 100, 1)


@pickups.aggregate
class PickupNotification:
    ward_id: Identifier(required=True)
    ward_number: Integer(required=True, min_value=1, max_value=32)
    scheduled_at: DateTime(required=True)
    scheduled_time: String(required=True, max_length=10)
    message: ValueObject(MessageText)
    status: String(choices=NotificationStatus, default=NotificationStatus.SCHEDULED.value)
    response_stats: ValueObject(ResponseStats)
    created_by: String(required=True, max_length=255)
    created_at: DateTime(required=True)
    updated_at: DateTime()
    sent_at: DateTime()
    delivery_id: String(max_length=255)
    dispatch_token: String(max_length=64)
    failed_at: DateTime()
    failure_reason: String(max_length=1000)
    cancelled_at: DateTime()
    cancelled_by: String(max_length=255)
    cancellation_reason: String(max_length=500)
    completed_at: DateTime()
    parent_notification_id: Identifier()
    rescheduled_to: Identifier()
    is_rescheduled: Boolean(default=False)
    reschedule_reason: String(max_length=500)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def announce(
        cls,
        ward,
        scheduled_at: datetime,
        scheduled_time: str,
        message_text: str,
        message_text_alt: str | None,
        created_by: str,
        now: datetime,
        parent_notification_id: str | None = None,
        reschedule_reason: str | None = None,
    ):
        """Create a ``scheduled`` notification for ``ward`` with zeroed counters."""
        default_text = validate_message(message_text)
        alt_text = validate_message(message_text_alt, "message_text_alt") if message_text_alt else default_text

        notification = cls(
            ward_id=ward.id,
            ward_number=ward.number,
            scheduled_at=scheduled_at,
            scheduled_time=scheduled_time,
            message=MessageText(default=default_text, alt=alt_text),
            response_stats=ResponseStats(yes_count=0, no_count=0, total_customers=ward.customer_count or 0),
            created_by=created_by,
            created_at=now,
            updated_at=now,
            parent_notification_id=parent_notification_id,
            is_rescheduled=parent_notification_id is not None,
            reschedule_reason=reschedule_reason,
        )
        notification.raise_(
            NotificationCreated(
                notification_id=notification.id,
                ward_id=ward.id,
                ward_number=ward.number,
                scheduled_at=scheduled_at,
                scheduled_time=scheduled_time,
                total_customers=notification.response_stats.total_customers,
                is_rescheduled=notification.is_rescheduled,
                parent_notification_id=parent_notification_id,
                created_by=created_by,
                created_at=now,
            )
        )
        return notification

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> NotificationStatus:
        return NotificationStatus(self.status)

    def _assert_can_transition(self, target_status: NotificationStatus) -> None:
        current = self.current_status
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateError(
                f"Cannot transition from {current.value} to {target_status.value}",
                notification_id=str(self.id),
            )

    def is_open_for_responses(self, now: datetime) -> bool:
        """Residents may answer while the notification is sent and not yet past.

        The window closes at the pickup's scheduled time rather than at the end
        of the pickup day, so an answer given after the truck was due is refused.
        """
        return self.current_status == NotificationStatus.SENT and now <= self.scheduled_at

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def claim_dispatch(self, token: str) -> bool:
        """Take the one-time right to fan this notification out.

        Returns False when the notification is no longer ``scheduled`` or a
        previous delivery of the trigger already holds the claim.
        """
        if self.current_status != NotificationStatus.SCHEDULED or self.dispatch_token:
            return False
        self.dispatch_token = token
        return True

    def mark_sent(self, delivery_id: str, total_customers: int, now: datetime) -> None:
        self._assert_can_transition(NotificationStatus.SENT)
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.updated_at = now
        self.delivery_id = delivery_id
        self.response_stats = ResponseStats(
            yes_count=self.response_stats.yes_count,
            no_count=self.response_stats.no_count,
            total_customers=max(0, total_customers or 0),
        )
        self.raise_(
            NotificationSent(
                notification_id=self.id,
                ward_number=self.ward_number,
                delivery_id=delivery_id,
                total_customers=self.response_stats.total_customers,
                sent_at=now,
            )
        )

    def mark_failed(self, error: str, now: datetime) -> None:
        self._assert_can_transition(NotificationStatus.FAILED)
        self.status = NotificationStatus.FAILED.value
        self.failed_at = now
        self.updated_at = now
        self.failure_reason = error
        self.raise_(
            NotificationDeliveryFailed(
                notification_id=self.id,
                ward_number=self.ward_number,
                error=error,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Admin actions
    # -------------------------------------------------------------------
    def cancel(self, cancelled_by: str, now: datetime, reason: str | None = None) -> bool:
        """Cancel without a replacement. Returns False if already cancelled."""
        if self.current_status == NotificationStatus.CANCELLED:
            return False
        self._assert_can_transition(NotificationStatus.CANCELLED)

        self._mark_cancelled(cancelled_by, now, reason)
        self.raise_(
            NotificationCancelled(
                notification_id=self.id,
                ward_id=self.ward_id,
                ward_number=self.ward_number,
                scheduled_at=self.scheduled_at,
                cancelled_by=cancelled_by,
                reason=reason,
                cancelled_at=now,
            )
        )
        return True

    def supersede(self, replacement_id: str, cancelled_by: str, now: datetime, reason: str = "Rescheduled") -> None:
        """Cancel this notification in favour of ``replacement_id``."""
        if self.current_status not in (NotificationStatus.SCHEDULED, NotificationStatus.SENT):
            raise InvalidStateError(
                f"Cannot reschedule a {self.status} notification",
                notification_id=str(self.id),
            )

        self._mark_cancelled(cancelled_by, now, reason)
        self.rescheduled_to = replacement_id
        self.raise_(
            NotificationRescheduled(
                notification_id=self.id,
                rescheduled_to=replacement_id,
                ward_number=self.ward_number,
                cancelled_by=cancelled_by,
                reason=reason,
                cancelled_at=now,
            )
        )

    def _mark_cancelled(self, cancelled_by: str, now: datetime, reason: str | None) -> None:
        self.status = NotificationStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason
        self.updated_at = now

    def complete(self, now: datetime) -> None:
        self._assert_can_transition(NotificationStatus.COMPLETED)
        self.status = NotificationStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            NotificationCompleted(
                notification_id=self.id,
                ward_number=self.ward_number,
                completed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Response counters
    # -------------------------------------------------------------------
    def record_response_change(self, previous: str | None, current: str | None) -> None:
        """Move one resident's answer from ``previous`` to ``current``.

        Either side may be None (first answer, or deletion). Counters never
        drop below zero.
        """
        if previous == current:
            return

        counts = {
            "yes": self.response_stats.yes_count or 0,
            "no": self.response_stats.no_count or 0,
        }
        if previous in counts:
            counts[previous] = max(0, counts[previous] - 1)
        if current in counts:
            counts[current] += 1

        self.response_stats = ResponseStats(
            yes_count=counts["yes"],
            no_count=counts["no"],
            total_customers=self.response_stats.total_customers,
        )

    def overwrite_counts(self, yes_count: int, no_count: int) -> None:
        """Replace the tallies with recomputed values (reconciliation only)."""
        self.response_stats = ResponseStats(
            yes_count=max(0, yes_count),
            no_count=max(0, no_count),
            total_customers=self.response_stats.total_customers,
        )
