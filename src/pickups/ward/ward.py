"""Ward aggregate root with its bilingual name.

A ward is the unit of broadcast targeting and response aggregation. Wards are
seeded once, never deleted, only deactivated. ``customer_count`` is a
denormalized counter maintained by membership deltas and used as the
denominator when notifications snapshot their audience size.
"""

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, ValueObject

from pickups.config import utc_now
from pickups.domain import pickups
from pickups.ward.events import WardActivated, WardDeactivated

MIN_WARD_NUMBER = 1
MAX_WARD_NUMBER = 32


def ward_id_for(ward_number: int) -> str:
    return f"ward_{ward_number}"


def validate_ward_number(ward_number) -> int:
    if isinstance(ward_number, bool) or not isinstance(ward_number, int):
        raise ValidationError({"ward_number": ["Ward number must be an integer"]})
    if not MIN_WARD_NUMBER <= ward_number <= MAX_WARD_NUMBER:
        raise ValidationError(
            {"ward_number": [f"Ward number must be between {MIN_WARD_NUMBER} and {MAX_WARD_NUMBER}"]}
        )
    return ward_number


@pickups.value_object(part_of="Ward")
class LocalizedName:
    """Ward display name in the default and alternate (Nepali) language."""

    default: String(required=True, max_length=100)
    alt: String(max_length=100)


@pickups.aggregate
class Ward:
    number: Integer(required=True, min_value=MIN_WARD_NUMBER, max_value=MAX_WARD_NUMBER, unique=True)
    name: ValueObject(LocalizedName)
    customer_count: Integer(default=0, min_value=0)
    is_active: Boolean(default=True)
    created_at: DateTime(default=utc_now)
    updated_at: DateTime(default=utc_now)

    @classmethod
    def seed(cls, number: int, name: str, name_alt: str | None = None):
        validate_ward_number(number)
        return cls(
            id=ward_id_for(number),
            number=number,
            name=LocalizedName(default=name, alt=name_alt or name),
        )

    @property
    def topic(self) -> str:
        return f"ward_{self.number}"

    def adjust_customer_count(self, delta: int) -> None:
        """Apply a membership delta, clamped at zero."""
        self.customer_count = max(0, (self.customer_count or 0) + delta)
        self.updated_at = utc_now()

    def activate(self) -> None:
        if self.is_active:
            return
        self.is_active = True
        self.updated_at = utc_now()
        self.raise_(WardActivated(ward_id=self.id, number=self.number))

    def deactivate(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        self.updated_at = utc_now()
        self.raise_(WardDeactivated(ward_id=self.id, number=self.number))
