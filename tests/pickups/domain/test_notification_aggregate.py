"""Domain tests for the PickupNotification aggregate and its state machine."""

from datetime import UTC, datetime, timedelta

import pytest
from pickups.errors import InvalidStateError
from pickups.notification.events import (
    NotificationCancelled,
    NotificationCompleted,
    NotificationCreated,
    NotificationDeliveryFailed,
    NotificationRescheduled,
    NotificationSent,
)
from pickups.notification.notification import NotificationStatus, PickupNotification
from pickups.ward.ward import Ward
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 14, 6, 0, tzinfo=UTC)
PICKUP_AT = NOW + timedelta(days=1)
MESSAGE = "Waste pickup tomorrow. Keep your bins outside."


@pytest.fixture()
def ward():
    ward = Ward.seed(5, "Ward 5 - Swayambhu")
    ward.customer_count = 245
    return ward


@pytest.fixture()
def notification(ward):
    notification = PickupNotification.announce(
        ward=ward,
        scheduled_at=PICKUP_AT,
        scheduled_time="9:00 AM",
        message_text=MESSAGE,
        message_text_alt=None,
        created_by="admin-001",
        now=NOW,
    )
    notification._events.clear()
    return notification


@pytest.fixture()
def sent(notification):
    notification.mark_sent("msg-1", 245, NOW)
    notification._events.clear()
    return notification


class TestAnnounce:
    def test_starts_scheduled_with_zeroed_counters(self, ward):
        notification = PickupNotification.announce(
            ward=ward,
            scheduled_at=PICKUP_AT,
            scheduled_time="9:00 AM",
            message_text=MESSAGE,
            message_text_alt=None,
            created_by="admin-001",
            now=NOW,
        )
        assert notification.status == NotificationStatus.SCHEDULED.value
        assert notification.response_stats.yes_count == 0
        assert notification.response_stats.no_count == 0
        assert notification.response_stats.total_customers == 245
        assert notification.ward_id == "ward_5"
        assert notification.ward_number == 5
        assert notification.is_rescheduled is False

    def test_alt_text_defaults_to_default_text(self, notification):
        assert notification.message.alt == MESSAGE

    def test_raises_created_event(self, ward):
        notification = PickupNotification.announce(
            ward=ward,
            scheduled_at=PICKUP_AT,
            scheduled_time="9:00 AM",
            message_text=MESSAGE,
            message_text_alt="भोलि फोहोर संकलन हुनेछ, कृपया तयार रहनुहोस्।",
            created_by="admin-001",
            now=NOW,
        )
        event = notification._events[-1]
        assert isinstance(event, NotificationCreated)
        assert event.notification_id == notification.id
        assert event.total_customers == 245

    @pytest.mark.parametrize("text", ["", "   ", "too short"])
    def test_message_must_have_ten_characters(self, ward, text):
        with pytest.raises(ValidationError) as exc:
            PickupNotification.announce(
                ward=ward,
                scheduled_at=PICKUP_AT,
                scheduled_time="9:00 AM",
                message_text=text,
                message_text_alt=None,
                created_by="admin-001",
                now=NOW,
            )
        assert "message_text" in exc.value.messages

    def test_replacement_links_to_parent(self, ward):
        notification = PickupNotification.announce(
            ward=ward,
            scheduled_at=PICKUP_AT,
            scheduled_time="10:00 AM",
            message_text=MESSAGE,
            message_text_alt=None,
            created_by="admin-001",
            now=NOW,
            parent_notification_id="original-1",
            reschedule_reason="Truck breakdown",
        )
        assert notification.is_rescheduled is True
        assert notification.parent_notification_id == "original-1"
        assert notification.reschedule_reason == "Truck breakdown"


class TestDispatch:
    def test_claim_succeeds_once(self, notification):
        assert notification.claim_dispatch("token-a") is True
        assert notification.claim_dispatch("token-b") is False
        assert notification.dispatch_token == "token-a"

    def test_claim_refused_when_not_scheduled(self, sent):
        assert sent.claim_dispatch("token-a") is False

    def test_mark_sent_refreshes_audience(self, notification):
        notification.mark_sent("msg-1", 250, NOW)
        assert notification.status == NotificationStatus.SENT.value
        assert notification.sent_at == NOW
        assert notification.delivery_id == "msg-1"
        assert notification.response_stats.total_customers == 250
        assert isinstance(notification._events[-1], NotificationSent)

    def test_mark_failed_is_terminal(self, notification):
        notification.mark_failed("topic unavailable", NOW)
        assert notification.status == NotificationStatus.FAILED.value
        assert notification.failure_reason == "topic unavailable"
        assert isinstance(notification._events[-1], NotificationDeliveryFailed)

        with pytest.raises(InvalidStateError):
            notification.mark_sent("msg-2", 245, NOW)
        with pytest.raises(InvalidStateError):
            notification.cancel("admin-001", NOW)

    def test_cannot_send_twice(self, sent):
        with pytest.raises(InvalidStateError):
            sent.mark_sent("msg-2", 245, NOW)


class TestCancel:
    def test_cancel_scheduled(self, notification):
        assert notification.cancel("admin-001", NOW, reason="Holiday") is True
        assert notification.status == NotificationStatus.CANCELLED.value
        assert notification.cancelled_by == "admin-001"
        assert notification.cancellation_reason == "Holiday"
        event = notification._events[-1]
        assert isinstance(event, NotificationCancelled)
        assert event.ward_number == 5

    def test_cancel_sent(self, sent):
        assert sent.cancel("admin-001", NOW) is True
        assert sent.status == NotificationStatus.CANCELLED.value

    def test_cancel_is_idempotent(self, sent):
        sent.cancel("admin-001", NOW)
        sent._events.clear()
        assert sent.cancel("admin-001", NOW) is False
        assert sent._events == []

    def test_cannot_cancel_completed(self, sent):
        sent.complete(NOW)
        with pytest.raises(InvalidStateError):
            sent.cancel("admin-001", NOW)


class TestSupersede:
    def test_supersede_links_replacement(self, sent):
        sent.supersede("replacement-1", "admin-001", NOW)
        assert sent.status == NotificationStatus.CANCELLED.value
        assert sent.rescheduled_to == "replacement-1"
        assert sent.cancellation_reason == "Rescheduled"
        event = sent._events[-1]
        assert isinstance(event, NotificationRescheduled)
        assert not any(isinstance(e, NotificationCancelled) for e in sent._events)

    def test_cannot_supersede_cancelled(self, notification):
        notification.cancel("admin-001", NOW)
        with pytest.raises(InvalidStateError):
            notification.supersede("replacement-1", "admin-001", NOW)


class TestComplete:
    def test_complete_sent(self, sent):
        sent.complete(NOW)
        assert sent.status == NotificationStatus.COMPLETED.value
        assert isinstance(sent._events[-1], NotificationCompleted)

    def test_cannot_complete_scheduled(self, notification):
        with pytest.raises(InvalidStateError):
            notification.complete(NOW)


class TestResponseWindow:
    def test_open_when_sent_and_upcoming(self, sent):
        assert sent.is_open_for_responses(NOW) is True

    def test_closed_when_scheduled(self, notification):
        assert notification.is_open_for_responses(NOW) is False

    def test_closed_after_pickup_time(self, sent):
        assert sent.is_open_for_responses(PICKUP_AT + timedelta(minutes=1)) is False


class TestResponseCounters:
    def test_first_answer_increments(self, sent):
        sent.record_response_change(None, "yes")
        assert (sent.response_stats.yes_count, sent.response_stats.no_count) == (1, 0)

    def test_changed_answer_moves_between_counters(self, sent):
        sent.record_response_change(None, "yes")
        sent.record_response_change("yes", "no")
        assert (sent.response_stats.yes_count, sent.response_stats.no_count) == (0, 1)

    def test_same_answer_is_noop(self, sent):
        sent.record_response_change(None, "yes")
        sent.record_response_change("yes", "yes")
        assert sent.response_stats.yes_count == 1

    def test_decrement_clamped_at_zero(self, sent):
        sent.record_response_change("no", None)
        assert sent.response_stats.no_count == 0

    def test_audience_snapshot_untouched(self, sent):
        sent.record_response_change(None, "yes")
        assert sent.response_stats.total_customers == 245

    def test_response_rate(self, sent):
        for _ in range(49):
            sent.record_response_change(None, "yes")
        assert sent.response_stats.response_rate == 20.0
