"""Post-commit reaction that pushes cancellations to ward topics.

Runs after the unit of work that cancelled the notification has committed.
The handler never touches a repository, so its own unit of work stays empty
and the fanout call holds no transaction open. Errors are logged and dropped;
a failed cancellation push must never fail the writer.

Scheduled pushes are not handled here. ``NotificationLifecycle`` dispatches
them itself once the creating write commits, so the dispatch claim can commit
before the fanout call.
"""

import structlog
from protean.utils.mixins import handle

from pickups.domain import pickups
from pickups.fanout import get_fanout
from pickups.notification.events import NotificationCancelled
from pickups.notification.lifecycle import NotificationLifecycle
from pickups.notification.notification import PickupNotification

logger = structlog.get_logger(__name__)


@pickups.event_handler(part_of=PickupNotification)
class NotificationDispatchEventHandler:
    """Sends the cancelled push."""

    @handle(NotificationCancelled)
    def on_notification_cancelled(self, event: NotificationCancelled) -> None:
        try:
            NotificationLifecycle(get_fanout()).on_cancelled(str(event.notification_id), event.ward_number)
        except Exception:
            logger.error(
                "Dispatch of cancellation failed",
                notification_id=str(event.notification_id),
                exc_info=True,
            )
