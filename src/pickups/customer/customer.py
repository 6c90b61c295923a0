"""Customer aggregate: a resident, their ward assignment and push token.

``ward_id`` and ``device_token`` are the two fields whose changes need
coordinated side effects (topic membership and ward counters). Every ward move
bumps ``ward_change_seq``; ``counted_ward_change_seq`` is the last move whose
counter delta has been applied to the wards.
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from pickups.customer.events import CustomerRegistered, CustomerWardChanged, DeviceTokenRefreshed
from pickups.domain import pickups


class LanguagePreference(Enum):
    ENGLISH = "en"
    NEPALI = "ne"


@pickups.aggregate
class Customer:
    phone: String(required=True, max_length=20)
    name: String(required=True, max_length=150)
    ward_id: Identifier(required=True)
    ward_number: Integer(required=True, min_value=1, max_value=32)
    device_token: String(max_length=4096)
    device_token_updated_at: DateTime()
    language_pref: String(choices=LanguagePreference, default=LanguagePreference.ENGLISH.value)
    is_active: Boolean(default=True)
    ward_change_seq: Integer(default=0, min_value=0)
    counted_ward_change_seq: Integer(default=0, min_value=0)
    registered_at: DateTime(required=True)
    updated_at: DateTime()

    @classmethod
    def register(
        cls,
        customer_id: str,
        phone: str,
        name: str,
        ward,
        now: datetime,
        device_token: str | None = None,
        language_pref: str = LanguagePreference.ENGLISH.value,
    ):
        customer = cls(
            id=customer_id,
            phone=phone,
            name=name,
            ward_id=ward.id,
            ward_number=ward.number,
            device_token=device_token or None,
            device_token_updated_at=now if device_token else None,
            language_pref=language_pref,
            registered_at=now,
            updated_at=now,
        )
        customer.raise_(
            CustomerRegistered(
                customer_id=customer.id,
                ward_id=ward.id,
                ward_number=ward.number,
                language_pref=customer.language_pref,
                registered_at=now,
            )
        )
        return customer

    @property
    def topic(self) -> str:
        return f"ward_{self.ward_number}"

    def move_to_ward(self, ward, now: datetime) -> int | None:
        """Reassign to ``ward``. Returns the new change sequence, or None if unchanged."""
        if ward.id == self.ward_id:
            return None

        old_ward_id, old_ward_number = self.ward_id, self.ward_number
        self.ward_id = ward.id
        self.ward_number = ward.number
        self.ward_change_seq = (self.ward_change_seq or 0) + 1
        self.updated_at = now
        self.raise_(
            CustomerWardChanged(
                customer_id=self.id,
                old_ward_id=old_ward_id,
                old_ward_number=old_ward_number,
                new_ward_id=ward.id,
                new_ward_number=ward.number,
                seq=self.ward_change_seq,
                changed_at=now,
            )
        )
        return self.ward_change_seq

    def has_counted(self, seq: int) -> bool:
        return seq <= (self.counted_ward_change_seq or 0)

    def mark_counted(self, seq: int) -> None:
        self.counted_ward_change_seq = max(self.counted_ward_change_seq or 0, seq)

    def refresh_device_token(self, token: str, now: datetime) -> str | None:
        """Store a new push token. Returns the token it replaces."""
        if not token or not token.strip():
            raise ValidationError({"device_token": ["Device token is required"]})

        previous = self.device_token
        self.device_token = token.strip()
        self.device_token_updated_at = now
        self.updated_at = now
        self.raise_(
            DeviceTokenRefreshed(
                customer_id=self.id,
                ward_number=self.ward_number,
                had_previous_token=bool(previous),
                refreshed_at=now,
            )
        )
        return previous
