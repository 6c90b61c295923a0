"""Topic membership: keeps a resident's push subscription and the ward
counters aligned with their ward assignment.

Push subscriptions live in an external, non-transactional service, so topic
moves are best effort: a failed unsubscribe is logged and ignored, a failed
subscribe is reported back as a ``PartialFailure``. Ward counters feed the
``total_customers`` snapshot and are only ever changed inside a unit of work,
once per ward change.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from pickups.access import Caller, require_self
from pickups.config import utc_now
from pickups.customer.customer import Customer, LanguagePreference
from pickups.errors import InvalidStateError, NotFoundError, PartialFailure
from pickups.fanout.port import FanoutPort, topic_for_ward
from pickups.store import run_in_transaction
from pickups.ward.registry import WardRegistry
from pickups.ward.ward import Ward, validate_ward_number

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MembershipResult:
    customer_id: str
    ward_number: int
    warnings: tuple[PartialFailure, ...] = field(default_factory=tuple)


class TopicMembership:
    def __init__(
        self,
        fanout: FanoutPort,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int | None = None,
        registry: WardRegistry | None = None,
    ) -> None:
        self.fanout = fanout
        self.clock = clock
        self.max_attempts = max_attempts
        self.registry = registry or WardRegistry()

    def get(self, customer_id: str) -> Customer:
        try:
            return current_domain.repository_for(Customer).get(customer_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Customer {customer_id} not found", customer_id=customer_id) from exc

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------
    def register(
        self,
        caller: Caller,
        customer_id: str,
        phone: str,
        name: str,
        ward_number: int,
        device_token: str | None = None,
        language_pref: str = LanguagePreference.ENGLISH.value,
    ) -> MembershipResult:
        """Create the resident's record, count them in their ward, subscribe their device."""
        require_self(caller, customer_id)
        validate_ward_number(ward_number)
        try:
            language = LanguagePreference(language_pref or LanguagePreference.ENGLISH.value).value
        except ValueError as exc:
            raise ValidationError({"language_pref": [f"Unsupported language: {language_pref}"]}) from exc

        def work():
            now = self.clock()
            try:
                current_domain.repository_for(Customer).get(customer_id)
            except ObjectNotFoundError:
                pass
            else:
                raise InvalidStateError(f"Customer {customer_id} is already registered", customer_id=customer_id)

            ward = self.registry.get_by_number(ward_number)
            if not ward.is_active:
                raise InvalidStateError(f"Ward {ward_number} is not active", ward_number=ward_number)

            customer = Customer.register(
                customer_id=customer_id,
                phone=phone,
                name=name,
                ward=ward,
                now=now,
                device_token=device_token,
                language_pref=language,
            )
            ward.adjust_customer_count(+1)
            current_domain.repository_for(Customer).add(customer)
            current_domain.repository_for(Ward).add(ward)

        run_in_transaction(work, max_attempts=self.max_attempts, label="register_customer")
        logger.info("Customer registered", customer_id=customer_id, ward_number=ward_number)

        warnings = []
        if device_token:
            failure = self._subscribe(device_token, topic_for_ward(ward_number), customer_id)
            if failure:
                warnings.append(failure)
        return MembershipResult(customer_id=customer_id, ward_number=ward_number, warnings=tuple(warnings))

    # -------------------------------------------------------------------
    # Ward change
    # -------------------------------------------------------------------
    def change_ward(self, caller: Caller, customer_id: str, new_ward_number: int) -> MembershipResult:
        """Move the resident to another ward, then apply the side effects."""
        require_self(caller, customer_id)
        validate_ward_number(new_ward_number)

        def work():
            now = self.clock()
            customer = self.get(customer_id)
            ward = self.registry.get_by_number(new_ward_number)
            if not ward.is_active:
                raise InvalidStateError(f"Ward {new_ward_number} is not active", ward_number=new_ward_number)

            old_ward_id = customer.ward_id
            seq = customer.move_to_ward(ward, now)
            if seq is None:
                return None
            current_domain.repository_for(Customer).add(customer)
            return old_ward_id, ward.id, customer.device_token, seq

        change = run_in_transaction(work, max_attempts=self.max_attempts, label="change_ward")
        if change is None:
            logger.info("Ward unchanged", customer_id=customer_id, ward_number=new_ward_number)
            return MembershipResult(customer_id=customer_id, ward_number=new_ward_number)

        old_ward_id, new_ward_id, device_token, seq = change
        logger.info(
            "Customer ward changed",
            customer_id=customer_id,
            old_ward_id=old_ward_id,
            new_ward_id=new_ward_id,
            seq=seq,
        )
        warnings = self.on_ward_changed(customer_id, old_ward_id, new_ward_id, device_token, seq=seq)
        return MembershipResult(customer_id=customer_id, ward_number=new_ward_number, warnings=tuple(warnings))

    def on_ward_changed(
        self,
        customer_id: str,
        old_ward_id: str,
        new_ward_id: str,
        device_token: str | None = None,
        seq: int | None = None,
    ) -> list[PartialFailure]:
        """Reaction to a ward change; safe to replay.

        ``seq`` identifies the change. Without it the customer's latest change
        is assumed. The counter delta for a given change is applied once; topic
        moves are skipped when a newer change has already superseded it.
        """
        latest_seq = self.get(customer_id).ward_change_seq or 0
        old_topic, new_topic = self._topic(old_ward_id), self._topic(new_ward_id)
        seq = latest_seq if seq is None else seq
        warnings = []

        if device_token and seq >= latest_seq:
            if old_topic:
                self._unsubscribe(device_token, old_topic, customer_id)
            if new_topic:
                failure = self._subscribe(device_token, new_topic, customer_id)
                if failure:
                    warnings.append(failure)
        elif device_token:
            logger.info("Skipping topic move for superseded ward change", customer_id=customer_id, seq=seq)

        applied = run_in_transaction(
            lambda: self._apply_counter_delta(customer_id, old_ward_id, new_ward_id, seq),
            max_attempts=self.max_attempts,
            label="ward_counter_delta",
        )
        if not applied:
            logger.info("Ward counter delta already applied", customer_id=customer_id, seq=seq)
        return warnings

    def _apply_counter_delta(self, customer_id: str, old_ward_id: str, new_ward_id: str, seq: int) -> bool:
        customer = self.get(customer_id)
        if customer.has_counted(seq):
            return False

        ward_repo = current_domain.repository_for(Ward)
        for ward_id, delta in ((old_ward_id, -1), (new_ward_id, +1)):
            try:
                ward = ward_repo.get(ward_id)
            except ObjectNotFoundError:
                logger.warning("Ward missing during counter update", ward_id=ward_id, customer_id=customer_id)
                continue
            ward.adjust_customer_count(delta)
            ward_repo.add(ward)

        customer.mark_counted(seq)
        current_domain.repository_for(Customer).add(customer)
        return True

    # -------------------------------------------------------------------
    # Device token
    # -------------------------------------------------------------------
    def refresh_device_token(self, caller: Caller, customer_id: str, new_token: str) -> MembershipResult:
        require_self(caller, customer_id)
        return self.on_device_token_refreshed(customer_id, new_token)

    def on_device_token_refreshed(self, customer_id: str, new_token: str) -> MembershipResult:
        """Swap the resident's push token on their ward topic and persist it.

        The token is stored even when subscribing it fails, so a later retry
        can resubscribe.
        """
        if not new_token or not new_token.strip():
            raise ValidationError({"device_token": ["Device token is required"]})
        new_token = new_token.strip()

        customer = self.get(customer_id)
        topic, previous = customer.topic, customer.device_token

        if previous and previous != new_token:
            self._unsubscribe(previous, topic, customer_id)

        warnings = []
        failure = self._subscribe(new_token, topic, customer_id)
        if failure:
            warnings.append(failure)

        def work():
            current = self.get(customer_id)
            current.refresh_device_token(new_token, self.clock())
            current_domain.repository_for(Customer).add(current)
            return current.ward_number

        ward_number = run_in_transaction(work, max_attempts=self.max_attempts, label="refresh_device_token")
        logger.info("Device token refreshed", customer_id=customer_id, topic=topic, subscribed=failure is None)
        return MembershipResult(customer_id=customer_id, ward_number=ward_number, warnings=tuple(warnings))

    # -------------------------------------------------------------------
    # Fanout calls
    # -------------------------------------------------------------------
    def _topic(self, ward_id: str) -> str | None:
        try:
            return self.registry.get(ward_id).topic
        except NotFoundError:
            logger.warning("Ward missing during topic move", ward_id=ward_id)
            return None

    def _unsubscribe(self, token: str, topic: str, customer_id: str) -> None:
        try:
            result = self.fanout.unsubscribe(token, topic)
            error = None if result.success else result.error
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        if error:
            logger.warning("Unsubscribe failed", customer_id=customer_id, topic=topic, error=error)

    def _subscribe(self, token: str, topic: str, customer_id: str) -> PartialFailure | None:
        try:
            result = self.fanout.subscribe(token, topic)
            error = None if result.success else result.error
        except Exception as exc:
            error = str(exc) or type(exc).__name__
        if error:
            logger.warning("Subscribe failed", customer_id=customer_id, topic=topic, error=error)
            return PartialFailure(operation="subscribe", topic=topic, reason=error or "Unknown error")
        return None
