"""Caller capabilities.

Authentication happens outside the domain. Every mutating entry point receives
an already-resolved caller and only checks its role, and for residents, that
they act on their own record.
"""

from dataclasses import dataclass
from enum import Enum

from pickups.errors import PermissionDenied


class Role(Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Caller:
    subject_id: str
    role: Role

    @classmethod
    def from_values(cls, subject_id: str | None, role: str | None) -> "Caller":
        if not subject_id or not role:
            raise PermissionDenied("Caller identity is required")
        try:
            return cls(subject_id=subject_id, role=Role(role.lower()))
        except ValueError as exc:
            raise PermissionDenied(f"Unknown role: {role}") from exc

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def require_admin(caller: Caller) -> None:
    if caller.role is not Role.ADMIN:
        raise PermissionDenied("Admin capability required", subject_id=caller.subject_id)


def require_self(caller: Caller, customer_id: str) -> None:
    """Only the resident may act on their own customer record."""
    if caller.role is not Role.CUSTOMER or caller.subject_id != customer_id:
        raise PermissionDenied(
            "Customers may only act on their own record",
            subject_id=caller.subject_id,
            customer_id=customer_id,
        )
