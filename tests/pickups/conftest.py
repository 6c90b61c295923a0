import contextvars
import threading
from datetime import UTC, datetime, timedelta

import pytest
from protean.integrations.pytest import DomainFixture

from pickups.access import Caller, Role
from pickups.config import local_timezone
from pickups.fanout import reset_fanout, set_fanout
from pickups.fanout.fake_adapter import FakeFanout


@pytest.fixture(scope="session")
def pickups_bed():
    from pickups.domain import pickups

    bed = DomainFixture(pickups)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(pickups_bed):
    with pickups_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        for _, broker in current_domain.brokers.items():
            broker._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def elsewhere(pickups_bed):
    """Run a callable on another thread with its own domain context.

    The thread starts from an empty context, so no unit of work open here is
    visible there and it only sees what has been committed.
    """

    def _run(fn):
        outcome = {}

        def target():
            try:
                with pickups_bed.domain.domain_context():
                    outcome["value"] = fn()
            except Exception as exc:
                outcome["error"] = exc

        thread = threading.Thread(target=contextvars.Context().run, args=(target,))
        thread.start()
        thread.join()
        if "error" in outcome:
            raise outcome["error"]
        return outcome.get("value")

    return _run


@pytest.fixture()
def in_parallel(pickups_bed):
    """Start callables together, each on its own thread and domain context.

    Returns what each callable returned, or the exception it raised, in order.
    """

    def _run(*fns):
        barrier = threading.Barrier(len(fns))
        outcomes = [None] * len(fns)

        def target(index, fn):
            with pickups_bed.domain.domain_context():
                barrier.wait()
                try:
                    outcomes[index] = fn()
                except Exception as exc:
                    outcomes[index] = exc

        threads = [
            threading.Thread(target=contextvars.Context().run, args=(target, index, fn))
            for index, fn in enumerate(fns)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return outcomes

    return _run


@pytest.fixture(autouse=True)
def fanout():
    """A fresh fake fanout, installed as the active adapter for every test."""
    fake = FakeFanout()
    set_fanout(fake)
    yield fake
    reset_fanout()


@pytest.fixture()
def wards():
    """The canonical 32 wards, all empty and active."""
    from pickups.ward.registry import WardRegistry

    registry = WardRegistry()
    registry.seed()
    return registry


@pytest.fixture()
def set_ward_count():
    from protean import current_domain

    from pickups.ward.ward import Ward, ward_id_for

    def _set(ward_number: int, count: int):
        repo = current_domain.repository_for(Ward)
        ward = repo.get(ward_id_for(ward_number))
        ward.customer_count = count
        repo.add(ward)
        return ward

    return _set


class FakeClock:
    """Settable clock for services that take a ``clock`` callable."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock(datetime.now(UTC))


@pytest.fixture()
def admin():
    return Caller(subject_id="admin-001", role=Role.ADMIN)


@pytest.fixture()
def resident():
    def _resident(customer_id: str) -> Caller:
        return Caller(subject_id=customer_id, role=Role.CUSTOMER)

    return _resident


@pytest.fixture()
def local_date():
    """ISO date ``days`` days from today in the municipality's timezone."""

    def _local_date(days: int) -> str:
        today = datetime.now(UTC).astimezone(local_timezone()).date()
        return (today + timedelta(days=days)).isoformat()

    return _local_date


@pytest.fixture()
def message():
    return "Waste pickup scheduled. Please keep your bins outside."


@pytest.fixture()
def register_customer(fanout, wards, resident):
    """Register a resident in a ward through the membership service."""
    from pickups.customer.membership import TopicMembership

    def _register(customer_id: str, ward_number: int, device_token: str | None = None):
        return TopicMembership(fanout).register(
            resident(customer_id),
            customer_id=customer_id,
            phone="+9779800000001",
            name=f"Resident {customer_id}",
            ward_number=ward_number,
            device_token=device_token,
        )

    return _register


@pytest.fixture()
def sent_notification(fanout, wards, admin, local_date, message):
    """Create a notification for a ward; with the default fake fanout it is sent on commit."""
    from pickups.notification.lifecycle import NotificationLifecycle

    def _create(ward_number: int = 5, days: int = 1, scheduled_time: str = "9:00 AM") -> str:
        return NotificationLifecycle(fanout).create(
            admin,
            ward_number=ward_number,
            scheduled_date=local_date(days),
            scheduled_time=scheduled_time,
            message_text=message,
        )

    return _create
