"""Offline recomputation of the denormalized counters.

``PickupNotification.response_stats`` and ``Ward.customer_count`` are kept by
incremental deltas. Partial failures can leave them drifted; this pass
recomputes both from the raw response and customer records, reports every
difference and, when asked, writes the corrected values.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import structlog
from protean.utils.globals import current_domain

from pickups.audit.audit_log import AuditAction, AuditLog
from pickups.config import utc_now
from pickups.customer.customer import Customer
from pickups.notification.notification import PickupNotification
from pickups.response.response import PickupResponse
from pickups.store import fetch_all, run_in_transaction
from pickups.ward.ward import Ward

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CounterDrift:
    entity_id: str
    counter: str
    stored: int
    actual: int


@dataclass(frozen=True)
class ReconciliationReport:
    notification_drifts: list[CounterDrift] = field(default_factory=list)
    ward_drifts: list[CounterDrift] = field(default_factory=list)
    applied: bool = False

    @property
    def has_drift(self) -> bool:
        return bool(self.notification_drifts or self.ward_drifts)


class CounterReconciler:
    def __init__(self, clock: Callable[[], datetime] = utc_now, max_attempts: int | None = None) -> None:
        self.clock = clock
        self.max_attempts = max_attempts

    def reconcile(self, apply: bool = False, actor_id: str = "system") -> ReconciliationReport:
        notification_drifts = self._notification_drifts()
        ward_drifts = self._ward_drifts()

        if apply:
            for notification_id in {drift.entity_id for drift in notification_drifts}:
                run_in_transaction(
                    lambda nid=notification_id: self._fix_notification(nid),
                    max_attempts=self.max_attempts,
                    label="reconcile_notification",
                )
            for drift in ward_drifts:
                run_in_transaction(
                    lambda wid=drift.entity_id: self._fix_ward(wid),
                    max_attempts=self.max_attempts,
                    label="reconcile_ward",
                )
            if ward_drifts:
                self._settle_pending_ward_changes()
            if notification_drifts or ward_drifts:
                current_domain.repository_for(AuditLog).add(
                    AuditLog.record(
                        AuditAction.COUNTERS_RECONCILED,
                        actor_id,
                        None,
                        self.clock(),
                        notifications=len({d.entity_id for d in notification_drifts}),
                        wards=len(ward_drifts),
                    )
                )

        report = ReconciliationReport(
            notification_drifts=notification_drifts,
            ward_drifts=ward_drifts,
            applied=apply,
        )
        logger.info(
            "Counter reconciliation finished",
            notification_drifts=len(notification_drifts),
            ward_drifts=len(ward_drifts),
            applied=apply,
        )
        return report

    # -------------------------------------------------------------------
    # Recompute
    # -------------------------------------------------------------------
    def _response_counts(self, notification_id) -> Counter:
        return Counter(r.value for r in fetch_all(PickupResponse, notification_id=notification_id))

    def _notification_drifts(self) -> list[CounterDrift]:
        drifts = []
        for notification in fetch_all(PickupNotification):
            actual = self._response_counts(notification.id)
            stats = notification.response_stats
            for counter, stored, value in (
                ("yes_count", stats.yes_count or 0, actual["yes"]),
                ("no_count", stats.no_count or 0, actual["no"]),
            ):
                if stored != value:
                    drifts.append(CounterDrift(str(notification.id), counter, stored, value))
        return drifts

    def _ward_membership(self) -> Counter:
        return Counter(c.ward_id for c in fetch_all(Customer) if c.is_active)

    def _ward_drifts(self) -> list[CounterDrift]:
        membership = self._ward_membership()
        return [
            CounterDrift(str(ward.id), "customer_count", ward.customer_count or 0, membership[ward.id])
            for ward in fetch_all(Ward)
            if (ward.customer_count or 0) != membership[ward.id]
        ]

    # -------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------
    def _fix_notification(self, notification_id: str) -> None:
        notification = current_domain.repository_for(PickupNotification).get(notification_id)
        actual = self._response_counts(notification_id)
        notification.overwrite_counts(actual["yes"], actual["no"])
        current_domain.repository_for(PickupNotification).add(notification)

    def _fix_ward(self, ward_id: str) -> None:
        ward = current_domain.repository_for(Ward).get(ward_id)
        ward.customer_count = self._ward_membership()[ward.id]
        current_domain.repository_for(Ward).add(ward)

    def _settle_pending_ward_changes(self) -> None:
        """Recounted wards already reflect every ward change; mark them applied."""
        for customer in fetch_all(Customer):
            if (customer.counted_ward_change_seq or 0) >= (customer.ward_change_seq or 0):
                continue

            def work(customer_id=customer.id):
                current = current_domain.repository_for(Customer).get(customer_id)
                current.mark_counted(current.ward_change_seq or 0)
                current_domain.repository_for(Customer).add(current)

            run_in_transaction(work, max_attempts=self.max_attempts, label="settle_ward_change")
