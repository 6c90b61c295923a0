"""Domain events for the Customer aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from pickups.domain import pickups


@pickups.event(part_of="Customer")
class CustomerRegistered:
    """A resident completed their profile and joined a ward."""

    __version__ = 1

    customer_id: Identifier(required=True)
    ward_id: Identifier(required=True)
    ward_number: Integer(required=True)
    language_pref: String(required=True)
    registered_at: DateTime(required=True)


@pickups.event(part_of="Customer")
class CustomerWardChanged:
    """A resident moved to a different ward.

    ``seq`` is the customer's ward-change sequence number; the ward counter
    delta for a given ``seq`` is applied at most once.
    """

    __version__ = 1

    customer_id: Identifier(required=True)
    old_ward_id: Identifier(required=True)
    old_ward_number: Integer(required=True)
    new_ward_id: Identifier(required=True)
    new_ward_number: Integer(required=True)
    seq: Integer(required=True)
    changed_at: DateTime(required=True)


@pickups.event(part_of="Customer")
class DeviceTokenRefreshed:
    """A resident's device registered a new push token."""

    __version__ = 1

    customer_id: Identifier(required=True)
    ward_number: Integer(required=True)
    had_previous_token: Boolean(default=False)
    refreshed_at: DateTime(required=True)
