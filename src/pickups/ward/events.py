"""Domain events for the Ward aggregate."""

from protean.fields import Identifier, Integer

from pickups.domain import pickups


@pickups.event(part_of="Ward")
class WardActivated:
    """A ward was (re)opened for pickup announcements."""

    __version__ = 1

    ward_id: Identifier(required=True)
    number: Integer(required=True)


@pickups.event(part_of="Ward")
class WardDeactivated:
    """A ward was closed for new pickup announcements."""

    __version__ = 1

    ward_id: Identifier(required=True)
    number: Integer(required=True)
