"""Domain tests for the Customer aggregate."""

from datetime import UTC, datetime

import pytest
from pickups.customer.customer import Customer
from pickups.customer.events import CustomerRegistered, CustomerWardChanged, DeviceTokenRefreshed
from pickups.ward.ward import Ward
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 14, 6, 0, tzinfo=UTC)


@pytest.fixture()
def customer():
    customer = Customer.register(
        customer_id="uid-001",
        phone="+9779800000001",
        name="Sita Sharma",
        ward=Ward.seed(5, "Ward 5 - Swayambhu"),
        now=NOW,
        device_token="token-1",
    )
    customer._events.clear()
    return customer


class TestRegistration:
    def test_register(self):
        customer = Customer.register(
            customer_id="uid-002",
            phone="+9779800000002",
            name="Ram Thapa",
            ward=Ward.seed(9, "Ward 9 - Lazimpat"),
            now=NOW,
            language_pref="ne",
        )
        assert customer.id == "uid-002"
        assert customer.ward_id == "ward_9"
        assert customer.ward_number == 9
        assert customer.device_token is None
        assert customer.language_pref == "ne"
        assert customer.ward_change_seq == 0
        assert customer.counted_ward_change_seq == 0
        assert isinstance(customer._events[-1], CustomerRegistered)

    def test_topic(self, customer):
        assert customer.topic == "ward_5"


class TestWardMove:
    def test_move_bumps_sequence(self, customer):
        seq = customer.move_to_ward(Ward.seed(9, "Ward 9 - Lazimpat"), NOW)
        assert seq == 1
        assert customer.ward_id == "ward_9"
        event = customer._events[-1]
        assert isinstance(event, CustomerWardChanged)
        assert (event.old_ward_id, event.new_ward_id, event.seq) == ("ward_5", "ward_9", 1)

    def test_move_to_same_ward_is_noop(self, customer):
        assert customer.move_to_ward(Ward.seed(5, "Ward 5 - Swayambhu"), NOW) is None
        assert customer.ward_change_seq == 0
        assert customer._events == []

    def test_counted_marker(self, customer):
        seq = customer.move_to_ward(Ward.seed(9, "Ward 9 - Lazimpat"), NOW)
        assert customer.has_counted(seq) is False
        customer.mark_counted(seq)
        assert customer.has_counted(seq) is True

    def test_counted_marker_never_goes_back(self, customer):
        customer.mark_counted(3)
        customer.mark_counted(1)
        assert customer.counted_ward_change_seq == 3


class TestDeviceToken:
    def test_refresh_returns_previous(self, customer):
        assert customer.refresh_device_token("token-2", NOW) == "token-1"
        assert customer.device_token == "token-2"
        assert customer.device_token_updated_at == NOW
        assert isinstance(customer._events[-1], DeviceTokenRefreshed)

    def test_blank_token_rejected(self, customer):
        with pytest.raises(ValidationError):
            customer.refresh_device_token("  ", NOW)
