"""Pickups bounded context: ward pickup notifications and resident responses.

Admins announce scheduled waste pickups to a ward; the announcement is fanned
out to the ward's push topic, residents answer yes/no, and the answers are
tallied on the notification. Residents' push subscriptions follow their ward
assignment, and ward customer counts feed the response-rate denominator.
"""

from protean.domain import Domain

from pickups.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

pickups = Domain(name="pickups")
