"""Tests for the retrying transaction helper."""

import pytest
from pickups.errors import InternalError, NotFoundError, TransientStoreError
from pickups.store import fetch_all, find_one, run_in_transaction
from pickups.ward.ward import Ward
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, InvalidOperationError


class TestRunInTransaction:
    def test_returns_work_result(self):
        assert run_in_transaction(lambda: 42) == 42

    def test_retries_on_version_conflict(self):
        attempts = []

        def work():
            attempts.append(1)
            if len(attempts) < 3:
                raise ExpectedVersionError("Concurrent write")
            return "done"

        assert run_in_transaction(work, max_attempts=5) == "done"
        assert len(attempts) == 3

    def test_retries_on_transient_error(self):
        attempts = []

        def work():
            attempts.append(1)
            if len(attempts) == 1:
                raise TransientStoreError("Timeout")
            return "done"

        assert run_in_transaction(work) == "done"
        assert len(attempts) == 2

    def test_exhausted_retries_raise_internal_error(self):
        attempts = []

        def work():
            attempts.append(1)
            raise ExpectedVersionError("Concurrent write")

        with pytest.raises(InternalError):
            run_in_transaction(work, max_attempts=3, label="test")
        assert len(attempts) == 3

    def test_attempt_bound_from_environment(self, monkeypatch):
        monkeypatch.setenv("PICKUPS_MAX_TRANSACTION_ATTEMPTS", "2")
        attempts = []

        def work():
            attempts.append(1)
            raise ExpectedVersionError("Concurrent write")

        with pytest.raises(InternalError):
            run_in_transaction(work)
        assert len(attempts) == 2

    def test_domain_errors_are_not_retried(self):
        attempts = []

        def work():
            attempts.append(1)
            raise NotFoundError("missing")

        with pytest.raises(NotFoundError):
            run_in_transaction(work)
        assert len(attempts) == 1

    def test_refuses_to_join_an_enclosing_unit_of_work(self, wards):
        attempts = []

        def work():
            attempts.append(1)
            ward = find_one(Ward, number=5)
            ward.adjust_customer_count(+1)

        with pytest.raises(InvalidOperationError):
            with UnitOfWork():
                run_in_transaction(work, label="nested")

        assert attempts == []
        assert find_one(Ward, number=5).customer_count == 0


class TestQueries:
    def test_fetch_all_pages_through_results(self, wards):
        assert len(fetch_all(Ward)) == 32

    def test_fetch_all_with_filters(self, wards):
        assert [w.number for w in fetch_all(Ward, number=7)] == [7]

    def test_find_one(self, wards):
        assert find_one(Ward, number=3).id == "ward_3"
        assert find_one(Ward, number=99) is None
