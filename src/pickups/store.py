"""Transaction and query helpers over Protean repositories.

Aggregates carry Protean's ``_version``; persisting a copy that another writer
has already advanced raises ``ExpectedVersionError``. ``run_in_transaction``
re-reads and re-applies the whole unit of work on such conflicts, which gives
serialized read-modify-write on a single document without application locks.

A unit of work started inside another one joins it, so the retry loop only
means something when it owns the outermost unit of work. Services are
therefore called directly, never from inside a handler or an open
``UnitOfWork``.
"""

from typing import Callable, TypeVar

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, InvalidOperationError
from protean.utils.globals import current_domain, current_uow

from pickups.config import max_transaction_attempts
from pickups.errors import InternalError, TransientStoreError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PAGE_SIZE = 100


def run_in_transaction(work: Callable[[], T], *, max_attempts: int | None = None, label: str = "transaction") -> T:
    """Run ``work`` inside a unit of work, retrying on write conflicts.

    ``work`` must do all of its reads itself so a retry sees fresh state.
    Domain errors raised by ``work`` propagate on the first attempt with
    nothing committed.
    """
    if current_uow:
        raise InvalidOperationError(f"{label} must not run inside an enclosing unit of work")

    attempts = max_attempts or max_transaction_attempts()

    for attempt in range(1, attempts + 1):
        try:
            with UnitOfWork():
                return work()
        except (ExpectedVersionError, TransientStoreError) as exc:
            logger.info(
                "Transaction conflict, retrying",
                label=label,
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
            )

    logger.error("Transaction retries exhausted", label=label, max_attempts=attempts)
    raise InternalError(f"{label} could not be committed after {attempts} attempts", label=label)


def fetch_all(aggregate_cls, **filters) -> list:
    """Return every stored record matching ``filters``, paging through the DAO."""
    query = current_domain.repository_for(aggregate_cls)._dao.query
    if filters:
        query = query.filter(**filters)

    records = []
    offset = 0
    while True:
        page = query.offset(offset).limit(PAGE_SIZE).all().items
        records.extend(page)
        if len(page) < PAGE_SIZE:
            return records
        offset += PAGE_SIZE


def find_one(aggregate_cls, **filters):
    """First record matching ``filters``, or None."""
    items = current_domain.repository_for(aggregate_cls)._dao.query.filter(**filters).limit(1).all().items
    return items[0] if items else None
