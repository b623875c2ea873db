"""
StatusStore compare-and-swap.

A swap succeeds only when the row is still in the expected status; the
loser of a race gets StaleStatusError and nothing is written.
"""

import pytest
from sqlalchemy import func, select, update

from hsse_kernel.exceptions import ConflictError, StaleStatusError
from hsse_kernel.models.audit_log import AuditLogEntryModel
from hsse_kernel.models.event import SafetyEventModel
from tests.actors import REPORTER, TENANT_ID


@pytest.fixture
def event(kernel):
    return kernel.events.submit_event(TENANT_ID, REPORTER, "incident", 2, "Slippery floor")


def audit_count(session):
    return session.execute(select(func.count()).select_from(AuditLogEntryModel)).scalar_one()


class TestCompareAndSwap:

    def test_swap_updates_status_and_writes_one_entry(self, kernel, event, session):
        before = audit_count(session)
        entry = kernel.store.compare_and_swap_status(
            event, "submitted", "investigation_in_progress",
            actor_id="officer", action="assign_investigator",
            changes={"investigator_id": "inv-9"},
        )
        assert event.status == "investigation_in_progress"
        assert event.investigator_id == "inv-9"
        assert audit_count(session) == before + 1
        assert (entry.old_value, entry.new_value) == ("submitted", "investigation_in_progress")
        assert entry.payload["investigator_id"] == "inv-9"

    def test_stale_expected_status_is_conflict(self, kernel, event, session):
        before = audit_count(session)
        with pytest.raises(StaleStatusError) as exc_info:
            kernel.store.compare_and_swap_status(
                event, "pending_hsse_validation", "investigation_in_progress",
                actor_id="officer", action="hsse_validation_accept",
            )
        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.expected_status == "pending_hsse_validation"
        assert audit_count(session) == before

    def test_concurrent_change_makes_loser_fail(self, kernel, event, session):
        """Another writer moves the row after we loaded it."""
        session.execute(
            update(SafetyEventModel)
            .where(SafetyEventModel.id == event.id)
            .values(status="closed")
            .execution_options(synchronize_session=False)
        )
        assert event.status == "submitted"  # in-memory copy is stale

        with pytest.raises(StaleStatusError):
            kernel.store.compare_and_swap_status(
                event, "submitted", "investigation_in_progress",
                actor_id="officer", action="assign_investigator",
            )

    def test_extra_expected_columns_are_preconditions(self, kernel, event):
        with pytest.raises(StaleStatusError):
            kernel.store.compare_and_swap_status(
                event, "submitted", "closed",
                actor_id=REPORTER, action="self_close",
                expected={"severity": 4},
            )

    def test_soft_deleted_rows_are_not_swapped(self, kernel, event, session, deterministic_clock):
        event.deleted_at = deterministic_clock.now()
        session.flush()
        with pytest.raises(StaleStatusError):
            kernel.store.compare_and_swap_status(
                event, "submitted", "closed", actor_id=REPORTER, action="self_close",
            )
