"""Ward statistics for the admin dashboard.

Response rates are computed from each notification's stored tallies over a
trailing window (``PICKUPS_STATS_WINDOW_DAYS``, default 30). Notifications
whose audience snapshot is zero do not contribute to the average.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

import structlog

from pickups.access import Caller, require_admin
from pickups.config import local_timezone, stats_window_days, utc_now
from pickups.notification.notification import PickupNotification
from pickups.store import fetch_all
from pickups.ward.registry import WardRegistry
from pickups.ward.ward import Ward

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WardStats:
    ward_number: int
    ward_id: str
    name: str
    name_alt: str | None
    customer_count: int
    is_active: bool
    recent_notifications: int
    average_response_rate: float
    last_pickup_date: str | None


@dataclass(frozen=True)
class WardSummary:
    total_customers: int
    total_wards: int
    active_wards: int
    overall_response_rate: float
    wards: list[WardStats] = field(default_factory=list)


class WardStatistics:
    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        window_days: int | None = None,
        registry: WardRegistry | None = None,
    ) -> None:
        self.clock = clock
        self.window_days = window_days or stats_window_days()
        self.registry = registry or WardRegistry()

    def for_ward(self, caller: Caller, ward_number: int) -> WardStats:
        require_admin(caller)
        return self._stats(self.registry.get_by_number(ward_number))

    def summary(self, caller: Caller) -> WardSummary:
        require_admin(caller)
        stats = [self._stats(ward) for ward in self.registry.list_wards()]

        overall = sum(s.average_response_rate for s in stats) / len(stats) if stats else 0.0
        logger.debug("Ward statistics computed", wards=len(stats), window_days=self.window_days)
        return WardSummary(
            total_customers=sum(s.customer_count for s in stats),
            total_wards=len(stats),
            active_wards=sum(1 for s in stats if s.customer_count > 0),
            overall_response_rate=round(overall, 1),
            wards=stats,
        )

    def _stats(self, ward: Ward) -> WardStats:
        since = self.clock() - timedelta(days=self.window_days)
        recent = [n for n in fetch_all(PickupNotification, ward_number=ward.number) if n.created_at >= since]

        rates = [
            (n.response_stats.responded / n.response_stats.total_customers) * 100
            for n in recent
            if n.response_stats and (n.response_stats.total_customers or 0) > 0
        ]
        average = sum(rates) / len(rates) if rates else 0.0

        last_pickup = max((n.scheduled_at for n in recent), default=None)
        return WardStats(
            ward_number=ward.number,
            ward_id=str(ward.id),
            name=ward.name.default if ward.name else "",
            name_alt=ward.name.alt if ward.name else None,
            customer_count=ward.customer_count or 0,
            is_active=bool(ward.is_active),
            recent_notifications=len(recent),
            average_response_rate=round(average, 1),
            last_pickup_date=last_pickup.astimezone(local_timezone()).date().isoformat() if last_pickup else None,
        )
