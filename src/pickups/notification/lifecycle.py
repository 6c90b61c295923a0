"""Notification lifecycle: create, dispatch, reschedule, cancel and complete.

The service owns every state transition of a PickupNotification. Writes that
must land together (a notification and its audit entry, or a cancelled
original and its replacement) share one unit of work. Once that commits, the
new notification is dispatched. The dispatch claim is committed before the
fanout call and the outcome is recorded afterwards in its own unit of work.
"""

from datetime import datetime
from typing import Callable
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from pickups.access import Caller, require_admin
from pickups.audit.audit_log import AuditAction, AuditLog
from pickups.config import utc_now
from pickups.errors import InvalidStateError, NotFoundError
from pickups.fanout.port import DeliveryResult, FanoutPort
from pickups.notification.messages import cancelled_message, default_reschedule_texts, scheduled_message
from pickups.notification.notification import NotificationStatus, PickupNotification
from pickups.notification.schedule import resolve_schedule
from pickups.store import fetch_all, run_in_transaction
from pickups.ward.registry import WardRegistry
from pickups.ward.ward import validate_ward_number

logger = structlog.get_logger(__name__)

RESCHEDULE_CANCELLATION_REASON = "Rescheduled"


class NotificationLifecycle:
    def __init__(
        self,
        fanout: FanoutPort,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int | None = None,
        registry: WardRegistry | None = None,
    ) -> None:
        self.fanout = fanout
        self.clock = clock
        self.max_attempts = max_attempts
        self.registry = registry or WardRegistry()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, notification_id: str) -> PickupNotification:
        try:
            return current_domain.repository_for(PickupNotification).get(notification_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(
                f"Notification {notification_id} not found", notification_id=notification_id
            ) from exc

    def list_notifications(self, ward_number: int | None = None, status: str | None = None) -> list:
        filters = {}
        if ward_number is not None:
            filters["ward_number"] = validate_ward_number(ward_number)
        if status is not None:
            try:
                filters["status"] = NotificationStatus(status).value
            except ValueError as exc:
                raise ValidationError({"status": [f"Unknown status: {status}"]}) from exc
        notifications = fetch_all(PickupNotification, **filters)
        return sorted(notifications, key=lambda n: n.scheduled_at, reverse=True)

    def reschedule_chain(self, notification_id: str) -> list[PickupNotification]:
        """All notifications linked to ``notification_id`` by reschedules, oldest first.

        The chain is walked one lookup at a time through the parent and
        replacement references.
        """
        current = self.get(notification_id)
        seen = {current.id}
        while current.parent_notification_id and current.parent_notification_id not in seen:
            current = self.get(current.parent_notification_id)
            seen.add(current.id)

        chain = [current]
        while current.rescheduled_to and current.rescheduled_to not in {n.id for n in chain}:
            current = self.get(current.rescheduled_to)
            chain.append(current)
        return chain

    # -------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------
    def create(
        self,
        caller: Caller,
        ward_number: int,
        scheduled_date,
        scheduled_time: str,
        message_text: str,
        message_text_alt: str | None = None,
    ) -> str:
        """Announce a pickup for a ward. Returns the new notification id."""
        require_admin(caller)
        validate_ward_number(ward_number)
        scheduled_at, display_time = resolve_schedule(scheduled_date, scheduled_time)

        def work():
            now = self.clock()
            ward = self._active_ward(ward_number)
            notification = PickupNotification.announce(
                ward=ward,
                scheduled_at=scheduled_at,
                scheduled_time=display_time,
                message_text=message_text,
                message_text_alt=message_text_alt,
                created_by=caller.subject_id,
                now=now,
            )
            current_domain.repository_for(PickupNotification).add(notification)
            current_domain.repository_for(AuditLog).add(
                AuditLog.record(
                    AuditAction.NOTIFICATION_CREATED,
                    caller.subject_id,
                    notification.id,
                    now,
                    ward_number=ward_number,
                    scheduled_at=scheduled_at,
                )
            )
            return str(notification.id)

        notification_id = run_in_transaction(work, max_attempts=self.max_attempts, label="create_notification")
        logger.info(
            "Notification created",
            notification_id=notification_id,
            ward_number=ward_number,
            scheduled_at=scheduled_at.isoformat(),
            created_by=caller.subject_id,
        )
        self._dispatch(notification_id)
        return notification_id

    def _active_ward(self, ward_number: int):
        ward = self.registry.get_by_number(ward_number)
        if not ward.is_active:
            raise InvalidStateError(f"Ward {ward_number} is not active", ward_number=ward_number)
        return ward

    # -------------------------------------------------------------------
    # Post-commit dispatch
    # -------------------------------------------------------------------
    def _dispatch(self, notification_id: str) -> None:
        """Dispatch a just-committed notification. Failures never reach the writer."""
        try:
            self.on_created(notification_id)
        except Exception:
            logger.error("Dispatch of created notification failed", notification_id=notification_id, exc_info=True)

    def on_created(self, notification_id: str) -> str | None:
        """Fan a freshly created notification out to its ward topic.

        Safe to invoke any number of times: only the invocation that claims
        the dispatch sends. Returns the resulting status, or None when this
        invocation did nothing.
        """
        token = uuid4().hex

        def claim():
            try:
                notification = current_domain.repository_for(PickupNotification).get(notification_id)
            except ObjectNotFoundError:
                return None
            if not notification.claim_dispatch(token):
                return None
            current_domain.repository_for(PickupNotification).add(notification)
            return notification

        notification = run_in_transaction(claim, max_attempts=self.max_attempts, label="claim_dispatch")
        if notification is None:
            logger.info("Dispatch skipped", notification_id=notification_id)
            return None

        message = scheduled_message(notification)
        try:
            result = self.fanout.send(message)
        except Exception as exc:
            logger.error("Fanout raised", notification_id=notification_id, topic=message.topic, exc_info=True)
            result = DeliveryResult(success=False, error=str(exc) or type(exc).__name__)

        def record():
            current = current_domain.repository_for(PickupNotification).get(notification_id)
            if current.current_status != NotificationStatus.SCHEDULED or current.dispatch_token != token:
                logger.info(
                    "Notification changed during dispatch",
                    notification_id=notification_id,
                    status=current.status,
                )
                return current.status

            now = self.clock()
            if result.success:
                current.mark_sent(result.delivery_id, self._live_customer_count(current.ward_id), now)
            else:
                current.mark_failed(result.error or "Unknown error", now)
            current_domain.repository_for(PickupNotification).add(current)
            return current.status

        status = run_in_transaction(record, max_attempts=self.max_attempts, label="record_dispatch")
        if result.success:
            logger.info(
                "Notification sent",
                notification_id=notification_id,
                topic=message.topic,
                delivery_id=result.delivery_id,
            )
        else:
            logger.warning(
                "Notification delivery failed",
                notification_id=notification_id,
                topic=message.topic,
                error=result.error,
            )
        return status

    def _live_customer_count(self, ward_id: str) -> int:
        try:
            return self.registry.get(ward_id).customer_count or 0
        except NotFoundError:
            return 0

    def on_cancelled(self, notification_id: str, ward_number: int) -> DeliveryResult:
        """Tell the ward a pickup was cancelled. Failures are logged only."""
        message = cancelled_message(notification_id, ward_number)
        try:
            result = self.fanout.send(message)
        except Exception as exc:
            logger.error("Fanout raised", notification_id=notification_id, topic=message.topic, exc_info=True)
            result = DeliveryResult(success=False, error=str(exc) or type(exc).__name__)

        if result.success:
            logger.info("Cancellation sent", notification_id=notification_id, topic=message.topic)
        else:
            logger.warning(
                "Cancellation delivery failed",
                notification_id=notification_id,
                topic=message.topic,
                error=result.error,
            )
        return result

    # -------------------------------------------------------------------
    # Reschedule
    # -------------------------------------------------------------------
    def reschedule(
        self,
        caller: Caller,
        original_id: str,
        scheduled_date,
        scheduled_time: str,
        message_text: str | None = None,
        message_text_alt: str | None = None,
        reason: str | None = None,
    ) -> str:
        """Cancel ``original_id`` and create its replacement as one write.

        Returns the replacement's id.
        """
        require_admin(caller)
        scheduled_at, display_time = resolve_schedule(scheduled_date, scheduled_time)

        if message_text:
            text, text_alt = message_text, message_text_alt or message_text
        else:
            text, text_alt = default_reschedule_texts(scheduled_at, display_time)

        def work():
            now = self.clock()
            original = self.get(original_id)
            if original.current_status not in (NotificationStatus.SCHEDULED, NotificationStatus.SENT):
                raise InvalidStateError(
                    f"Cannot reschedule a {original.status} notification",
                    notification_id=original_id,
                )
            ward = self._active_ward(original.ward_number)

            replacement = PickupNotification.announce(
                ward=ward,
                scheduled_at=scheduled_at,
                scheduled_time=display_time,
                message_text=text,
                message_text_alt=text_alt,
                created_by=caller.subject_id,
                now=now,
                parent_notification_id=original.id,
                reschedule_reason=reason,
            )
            original.supersede(replacement.id, caller.subject_id, now, RESCHEDULE_CANCELLATION_REASON)

            repo = current_domain.repository_for(PickupNotification)
            repo.add(original)
            repo.add(replacement)
            current_domain.repository_for(AuditLog).add(
                AuditLog.record(
                    AuditAction.PICKUP_RESCHEDULED,
                    caller.subject_id,
                    replacement.id,
                    now,
                    original_notification_id=original.id,
                    ward_number=original.ward_number,
                    scheduled_at=scheduled_at,
                    reason=reason,
                )
            )
            return str(replacement.id)

        replacement_id = run_in_transaction(work, max_attempts=self.max_attempts, label="reschedule_notification")
        logger.info(
            "Pickup rescheduled",
            original_id=original_id,
            replacement_id=replacement_id,
            scheduled_at=scheduled_at.isoformat(),
            rescheduled_by=caller.subject_id,
        )
        self._dispatch(replacement_id)
        return replacement_id

    # -------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------
    def cancel(self, caller: Caller, notification_id: str, reason: str | None = None) -> bool:
        """Cancel without a replacement. Returns False if it was already cancelled."""
        require_admin(caller)

        def work():
            now = self.clock()
            notification = self.get(notification_id)
            if not notification.cancel(caller.subject_id, now, reason):
                return False
            current_domain.repository_for(PickupNotification).add(notification)
            current_domain.repository_for(AuditLog).add(
                AuditLog.record(
                    AuditAction.PICKUP_CANCELLED,
                    caller.subject_id,
                    notification.id,
                    now,
                    ward_number=notification.ward_number,
                    reason=reason,
                )
            )
            return True

        changed = run_in_transaction(work, max_attempts=self.max_attempts, label="cancel_notification")
        if changed:
            logger.info("Notification cancelled", notification_id=notification_id, cancelled_by=caller.subject_id)
        else:
            logger.info("Notification already cancelled", notification_id=notification_id)
        return changed

    # -------------------------------------------------------------------
    # Completion sweep
    # -------------------------------------------------------------------
    def complete_elapsed(self, as_of: datetime | None = None) -> list[str]:
        """Move every ``sent`` notification whose pickup time has passed to ``completed``."""
        as_of = as_of or self.clock()
        completed = []

        for candidate in fetch_all(PickupNotification, status=NotificationStatus.SENT.value):
            if candidate.scheduled_at >= as_of:
                continue

            def work(notification_id=candidate.id):
                notification = self.get(notification_id)
                if notification.current_status != NotificationStatus.SENT:
                    return False
                notification.complete(as_of)
                current_domain.repository_for(PickupNotification).add(notification)
                return True

            if run_in_transaction(work, max_attempts=self.max_attempts, label="complete_notification"):
                completed.append(str(candidate.id))

        logger.info("Completion sweep finished", completed=len(completed), as_of=as_of.isoformat())
        return completed
