"""Shared BDD fixtures and step definitions for the Pickups domain."""

import pytest
from pickups.notification.notification import PickupNotification
from pickups.ward.ward import Ward, ward_id_for
from protean import current_domain
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def context():
    """Identifiers and outcomes carried between steps."""
    return {"notification_id": None, "original_id": None, "error": None, "result": None}


def _notification(notification_id):
    return current_domain.repository_for(PickupNotification).get(notification_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the wards are seeded")
def wards_seeded(wards):
    return wards


@given(parsers.cfparse('resident "{customer_id}" lives in ward {ward_number:d} with device "{token}"'))
def resident_with_device(register_customer, customer_id, ward_number, token):
    register_customer(customer_id, ward_number, device_token=token)


@given(parsers.cfparse('resident "{customer_id}" lives in ward {ward_number:d}'))
def resident_in_ward(register_customer, customer_id, ward_number):
    register_customer(customer_id, ward_number)


@given(parsers.cfparse("ward {ward_number:d} has {count:d} customers"))
def ward_has_customers(set_ward_count, ward_number, count):
    set_ward_count(ward_number, count)


@given("the fanout is unavailable")
def fanout_unavailable(fanout):
    fanout.configure(send_succeeds=False, failure_reason="Fanout unavailable")


@given("the fanout rejects subscriptions")
def fanout_rejects_subscriptions(fanout):
    fanout.configure(subscribe_succeeds=False, failure_reason="Fanout unavailable")


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the notification status is "{status}"'))
def notification_status_is(context, status):
    assert _notification(context["notification_id"]).status == status


@then(parsers.cfparse("the tallies are {yes:d} yes and {no:d} no"))
def tallies_are(context, yes, no):
    stats = _notification(context["notification_id"]).response_stats
    assert (stats.yes_count, stats.no_count) == (yes, no)


@then(parsers.re(r"ward (?P<ward_number>\d+) counts (?P<count>\d+) customers?"))
def ward_counts(ward_number, count):
    ward = current_domain.repository_for(Ward).get(ward_id_for(int(ward_number)))
    assert ward.customer_count == int(count)
