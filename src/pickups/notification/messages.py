"""Push payloads and default announcement texts."""

from datetime import datetime

from pickups.fanout.port import FanoutMessage, topic_for_ward
from pickups.notification.schedule import format_display_date

TYPE_SCHEDULED = "pickup_scheduled"
TYPE_RESCHEDULED = "pickup_rescheduled"
TYPE_CANCELLED = "pickup_cancelled"


def default_reschedule_texts(scheduled_at: datetime, scheduled_time: str) -> tuple[str, str]:
    """English and Nepali text used when an admin reschedules without a message."""
    display_date = format_display_date(scheduled_at)
    return (
        f"This pickup has been rescheduled. New time: {display_date} at {scheduled_time}",
        f"यो पिकअप पुन: तालिका गरिएको छ। नयाँ समय: {display_date} मा {scheduled_time}",
    )


def scheduled_message(notification) -> FanoutMessage:
    display_date = format_display_date(notification.scheduled_at)
    if notification.is_rescheduled:
        title = "Pickup Rescheduled"
        body = f"Pickup for Ward {notification.ward_number} moved to {display_date} at {notification.scheduled_time}"
        message_type = TYPE_RESCHEDULED
    else:
        title = "Waste Pickup Scheduled"
        body = f"Pickup for Ward {notification.ward_number} on {display_date} at {notification.scheduled_time}"
        message_type = TYPE_SCHEDULED

    data = {
        "notification_id": str(notification.id),
        "ward_number": str(notification.ward_number),
        "scheduled_date": notification.scheduled_at.isoformat(),
        "scheduled_time": notification.scheduled_time,
        "type": message_type,
    }
    if notification.parent_notification_id:
        data["parent_notification_id"] = str(notification.parent_notification_id)

    return FanoutMessage(topic=topic_for_ward(notification.ward_number), title=title, body=body, data=data)


def cancelled_message(notification_id: str, ward_number: int) -> FanoutMessage:
    return FanoutMessage(
        topic=topic_for_ward(ward_number),
        title="Pickup Cancelled",
        body=f"The scheduled pickup for Ward {ward_number} has been cancelled.",
        data={
            "notification_id": str(notification_id),
            "ward_number": str(ward_number),
            "type": TYPE_CANCELLED,
        },
    )
