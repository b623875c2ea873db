"""
SequenceService -- gap-tolerant, strictly increasing counters.

Two families of counters live in the ``sequence_counters`` table:

* ``audit_log:<tenant>`` -- the per-tenant audit ``seq``.  Holding its row
  lock for the rest of the transaction is what keeps audit appends in a
  tenant strictly ordered, so ``prev_hash`` always names the real
  predecessor.
* ``event_ref:<tenant>:<prefix>:<year>`` -- the running number in
  reference codes such as ``INC-2026-00042``.

The next value always comes from the locked row, never from MAX()+1.  A
rolled-back transaction gives its value back.  The service never commits.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def audit_sequence_name(tenant_id: str) -> str:
    return f"audit_log:{tenant_id}"


def reference_sequence_name(tenant_id: str, prefix: str, year: int) -> str:
    return f"event_ref:{tenant_id}:{prefix}:{year}"


class SequenceService:

    def __init__(self, session: Session):
        self._session = session

    def _lock(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _create(self, name: str) -> SequenceCounter | None:
        """Insert the counter at 0; None if a concurrent transaction won."""
        counter = SequenceCounter(name=name, current_value=0)
        savepoint = self._session.begin_nested()
        try:
            self._session.add(counter)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_created_concurrently", extra={"sequence_name": name})
            return None
        savepoint.commit()
        return counter

    def next_value(self, name: str) -> int:
        """Increment and return the counter; the first value is 1."""
        counter = self._lock(name) or self._create(name) or self._lock(name)
        if counter is None:
            raise RuntimeError(f"Sequence counter {name!r} vanished after creation")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "value": counter.current_value},
        )
        return counter.current_value
