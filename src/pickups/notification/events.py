"""Domain events for the PickupNotification aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from pickups.domain import pickups


@pickups.event(part_of="PickupNotification")
class NotificationCreated:
    """A pickup was announced for a ward and awaits fanout."""

    __version__ = 1

    notification_id: Identifier(required=True)
    ward_id: Identifier(required=True)
    ward_number: Integer(required=True)
    scheduled_at: DateTime(required=True)
    scheduled_time: String(required=True)
    total_customers: Integer(required=True)
    is_rescheduled: Boolean(default=False)
    parent_notification_id: Identifier()
    created_by: String(required=True)
    created_at: DateTime(required=True)


@pickups.event(part_of="PickupNotification")
class NotificationSent:
    """Fanout to the ward topic succeeded."""

    __version__ = 1

    notification_id: Identifier(required=True)
    ward_number: Integer(required=True)
    delivery_id: String(required=True)
    total_customers: Integer(required=True)
    sent_at: DateTime(required=True)


@pickups.event(part_of="PickupNotification")
class NotificationDeliveryFailed:
    """Fanout to the ward topic failed. The notification will not be retried."""

    __version__ = 1

    notification_id: Identifier(required=True)
    ward_number: Integer(required=True)
    error: String(required=True)
    failed_at: DateTime(required=True)


@pickups.event(part_of="PickupNotification")
class NotificationCancelled:
    """An admin cancelled the pickup without a replacement."""

    __version__ = 1

    notification_id: Identifier(required=True)
    ward_id: Identifier(required=True)
    ward_number: Integer(required=True)
    scheduled_at: DateTime(required=True)
    cancelled_by: String(required=True)
    reason: String()
    cancelled_at: DateTime(required=True)


@pickups.event(part_of="PickupNotification")
class NotificationRescheduled:
    """The pickup was superseded by a new notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    rescheduled_to: Identifier(required=True)
    ward_number: Integer(required=True)
    cancelled_by: String(required=True)
    reason: String()
    cancelled_at: DateTime(required=True)


@pickups.event(part_of="PickupNotification")
class NotificationCompleted:
    """The scheduled pickup time elapsed after a successful send."""

    __version__ = 1

    notification_id: Identifier(required=True)
    ward_number: Integer(required=True)
    completed_at: DateTime(required=True)
