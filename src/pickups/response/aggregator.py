"""Response aggregator: keeps a notification's yes/no tallies in step with
the individual response records.

Each submission reads the notification, upserts the response and moves the
counters in one unit of work. Two residents answering the same notification at
once both write that notification; the loser of the version race is re-run by
``run_in_transaction`` against fresh state, so no update is lost.
"""

from datetime import datetime
from typing import Callable

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from pickups.access import Caller, require_admin, require_self
from pickups.audit.audit_log import AuditAction, AuditLog
from pickups.config import utc_now
from pickups.customer.customer import Customer
from pickups.errors import InvalidStateError, NotFoundError
from pickups.notification.notification import PickupNotification
from pickups.response.response import PickupResponse, response_id_for, validate_value
from pickups.store import fetch_all, run_in_transaction

logger = structlog.get_logger(__name__)


class ResponseAggregator:
    def __init__(self, clock: Callable[[], datetime] = utc_now, max_attempts: int | None = None) -> None:
        self.clock = clock
        self.max_attempts = max_attempts

    def _notification(self, notification_id: str) -> PickupNotification:
        try:
            return current_domain.repository_for(PickupNotification).get(notification_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(
                f"Notification {notification_id} not found", notification_id=notification_id
            ) from exc

    def _existing_response(self, response_id: str) -> PickupResponse | None:
        try:
            return current_domain.repository_for(PickupResponse).get(response_id)
        except ObjectNotFoundError:
            return None

    def get(self, notification_id: str, customer_id: str) -> PickupResponse:
        response = self._existing_response(response_id_for(notification_id, customer_id))
        if response is None:
            raise NotFoundError(
                "Response not found",
                notification_id=notification_id,
                customer_id=customer_id,
            )
        return response

    def responses_for(self, notification_id: str) -> list[PickupResponse]:
        return fetch_all(PickupResponse, notification_id=notification_id)

    # -------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------
    def submit(self, caller: Caller, notification_id: str, customer_id: str, value: str) -> PickupResponse:
        """Record a resident's answer; last write wins per resident."""
        require_self(caller, customer_id)
        value = validate_value(value)

        def work():
            now = self.clock()
            notification = self._notification(notification_id)
            if not notification.is_open_for_responses(now):
                raise InvalidStateError(
                    "Response window closed",
                    notification_id=notification_id,
                    status=notification.status,
                )
            try:
                current_domain.repository_for(Customer).get(customer_id)
            except ObjectNotFoundError as exc:
                raise NotFoundError(f"Customer {customer_id} not found", customer_id=customer_id) from exc

            response = self._existing_response(response_id_for(notification_id, customer_id))
            if response is None:
                previous = None
                response = PickupResponse.submit(notification_id, customer_id, value, now)
            else:
                previous = response.change(value, now)

            if previous != value:
                notification.record_response_change(previous, value)
                current_domain.repository_for(PickupNotification).add(notification)
            current_domain.repository_for(PickupResponse).add(response)
            return response, previous

        response, previous = run_in_transaction(work, max_attempts=self.max_attempts, label="submit_response")
        logger.info(
            "Response recorded",
            notification_id=notification_id,
            customer_id=customer_id,
            value=value,
            previous_value=previous,
        )
        return response

    # -------------------------------------------------------------------
    # Deletion (administrative correction)
    # -------------------------------------------------------------------
    def on_response_deleted(self, deleted_value: str, notification_id: str) -> bool:
        """Take a deleted response's answer back out of the tallies.

        Returns False when the notification no longer exists.
        """
        deleted_value = validate_value(deleted_value)

        def work():
            try:
                notification = current_domain.repository_for(PickupNotification).get(notification_id)
            except ObjectNotFoundError:
                return False
            notification.record_response_change(deleted_value, None)
            current_domain.repository_for(PickupNotification).add(notification)
            return True

        applied = run_in_transaction(work, max_attempts=self.max_attempts, label="response_deleted")
        if not applied:
            logger.warning("Deleted response for unknown notification", notification_id=notification_id)
        return applied

    def delete_response(self, caller: Caller, notification_id: str, customer_id: str) -> None:
        """Remove a response and its contribution to the tallies together."""
        require_admin(caller)

        def work():
            now = self.clock()
            response = self.get(notification_id, customer_id)
            repo = current_domain.repository_for(PickupResponse)
            repo._dao.delete(response)

            try:
                notification = current_domain.repository_for(PickupNotification).get(notification_id)
            except ObjectNotFoundError:
                notification = None
            if notification is not None:
                notification.record_response_change(response.value, None)
                current_domain.repository_for(PickupNotification).add(notification)

            current_domain.repository_for(AuditLog).add(
                AuditLog.record(
                    AuditAction.RESPONSE_DELETED,
                    caller.subject_id,
                    response.id,
                    now,
                    notification_id=notification_id,
                    customer_id=customer_id,
                    value=response.value,
                )
            )
            return response.value

        value = run_in_transaction(work, max_attempts=self.max_attempts, label="delete_response")
        logger.info("Response deleted", notification_id=notification_id, customer_id=customer_id, value=value)
