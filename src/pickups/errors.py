"""Error taxonomy for the pickups domain.

Input validation uses ``protean.exceptions.ValidationError`` directly, the same
way the aggregates raise it. Everything else the caller can observe derives from
``PickupError`` so the API layer can map it to a status code in one place.
"""

from dataclasses import dataclass


class PickupError(Exception):
    """Base class for pickups domain errors."""

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(PickupError):
    """A referenced ward, customer, notification or response does not exist."""


class InvalidStateError(PickupError):
    """The operation is not legal in the entity's current lifecycle state."""


class PermissionDenied(PickupError):
    """The caller's role or identity does not allow the operation."""


class TransientStoreError(PickupError):
    """A transaction lost an optimistic-concurrency race; safe to retry."""


class InternalError(PickupError):
    """Unexpected downstream failure. The caller only sees a generic message."""


@dataclass(frozen=True)
class PartialFailure:
    """A best-effort side effect that did not complete.

    Returned in an operation's ``warnings``; the operation itself succeeded.
    """

    operation: str
    topic: str
    reason: str
