"""
ApprovalOrchestrator: intake, department review and HSSE review decisions.

Each test drives the orchestrator through its public operations with the
default configuration and the role map in tests/actors.py.
"""

import pytest

from hsse_kernel.exceptions import (
    GuardFailedError,
    InvalidDecisionError,
    InvalidTransitionError,
    MissingInvestigatorError,
    PermissionDeniedError,
    TextTooShortError,
    ValidationError,
)
from tests.actors import (
    DEPT_REP,
    HSSE_OFFICER,
    INVESTIGATOR,
    NOBODY,
    OTHER_REPORTER,
    REPORTER,
)

LONG_NOTES = "Hazard is already covered by the permit system"


@pytest.fixture
def observation_at_dept_rep(orchestrator, ctx, submit_event):
    """An observation routed to the department representative."""

    def _make(severity=2):
        event = submit_event("observation", severity)
        return orchestrator.route_to_department(ctx(HSSE_OFFICER), event.id)

    return _make


class TestSubmitAndTriage:

    def test_submitted_event_has_reference_and_status(self, submit_event):
        event = submit_event("observation", 1)
        assert event.status == "submitted"
        assert event.reference_code == "OBS-2026-00001"
        assert event.reporter_id == REPORTER

    def test_actor_without_roles_cannot_submit(self, orchestrator, ctx):
        with pytest.raises(PermissionDeniedError):
            orchestrator.submit_event(ctx(NOBODY), "incident", 2, "Spill")

    def test_route_to_department_is_for_observations(self, orchestrator, ctx, submit_event):
        incident = submit_event("incident", 2)
        with pytest.raises(GuardFailedError):
            orchestrator.route_to_department(ctx(HSSE_OFFICER), incident.id)

    def test_route_to_department_needs_triage_capability(self, orchestrator, ctx, submit_event):
        observation = submit_event("observation", 2)
        with pytest.raises(PermissionDeniedError):
            orchestrator.route_to_department(ctx(DEPT_REP), observation.id)

    def test_assign_investigator_records_investigator(self, orchestrator, ctx, submit_event):
        event = submit_event("incident", 3)
        updated = orchestrator.assign_investigator(ctx(HSSE_OFFICER), event.id, INVESTIGATOR)
        assert updated.status == "investigation_in_progress"
        assert updated.investigator_id == INVESTIGATOR

    def test_assign_investigator_requires_one(self, orchestrator, ctx, submit_event):
        event = submit_event("incident", 3)
        with pytest.raises(MissingInvestigatorError):
            orchestrator.assign_investigator(ctx(HSSE_OFFICER), event.id, None)
        assert orchestrator.get_event(ctx(HSSE_OFFICER), event.id).status == "submitted"

    def test_available_commands_follow_state(self, orchestrator, ctx, submit_event):
        event = submit_event("observation", 1)
        commands = {c.value for c in orchestrator.available_commands(ctx(REPORTER), event.id)}
        assert commands == {"route_to_department", "assign_investigator", "self_close"}


class TestSelfClose:

    @pytest.mark.parametrize("severity", [1, 2])
    def test_reporter_closes_low_severity(self, orchestrator, ctx, submit_event, deterministic_clock, severity):
        event = submit_event("observation", severity)
        closed = orchestrator.self_close(ctx(REPORTER), event.id)
        assert closed.status == "closed"
        assert closed.closure_outcome == "resolved"
        assert closed.closed_at == deterministic_clock.now()

    @pytest.mark.parametrize("severity", [3, 4, 5])
    def test_higher_severity_cannot_self_close(self, orchestrator, ctx, submit_event, severity):
        event = submit_event("incident", severity)
        with pytest.raises(GuardFailedError):
            orchestrator.self_close(ctx(REPORTER), event.id)

    def test_only_the_reporter_may_self_close(self, orchestrator, ctx, submit_event):
        event = submit_event("observation", 1)
        with pytest.raises(GuardFailedError):
            orchestrator.self_close(ctx(OTHER_REPORTER), event.id)

    def test_closed_event_rejects_further_commands(self, orchestrator, ctx, submit_event):
        event = submit_event("observation", 1)
        orchestrator.self_close(ctx(REPORTER), event.id)
        with pytest.raises(InvalidTransitionError):
            orchestrator.route_to_department(ctx(HSSE_OFFICER), event.id)


class TestDepartmentReview:

    def test_short_rejection_notes_are_refused(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        with pytest.raises(TextTooShortError) as exc_info:
            orchestrator.reject_observation(ctx(DEPT_REP), event.id, "no")
        assert isinstance(exc_info.value, ValidationError)
        assert orchestrator.get_event(ctx(DEPT_REP), event.id).status == "pending_dept_rep_approval"

    def test_rejection_goes_to_hsse_review(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        updated = orchestrator.reject_observation(ctx(DEPT_REP), event.id, LONG_NOTES)
        assert updated.status == "pending_hsse_rejection_review"

    def test_escalation_request_goes_to_hsse(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        updated = orchestrator.request_escalation(ctx(DEPT_REP), event.id, LONG_NOTES)
        assert updated.status == "pending_hsse_escalation_review"

    def test_escalation_request_notes_are_audited(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        orchestrator.request_escalation(ctx(DEPT_REP), event.id, LONG_NOTES)
        last = orchestrator.history(ctx(DEPT_REP), event.id)[-1]
        assert last.action == "request_escalation"
        assert last.notes == LONG_NOTES

    def test_dept_rep_can_send_for_validation(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        updated = orchestrator.submit_for_validation(ctx(DEPT_REP), event.id)
        assert updated.status == "pending_hsse_validation"


class TestRejectionReview:

    @pytest.fixture
    def pending_rejection(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep()
        return orchestrator.reject_observation(ctx(DEPT_REP), event.id, LONG_NOTES)

    def test_approving_rejection_closes(self, orchestrator, ctx, pending_rejection):
        closed = orchestrator.decide_rejection_review(
            ctx(HSSE_OFFICER), pending_rejection.id, "approve_rejection",
        )
        assert closed.status == "closed"
        assert closed.closure_outcome == "rejected"

    def test_overturning_returns_to_dept_rep(self, orchestrator, ctx, pending_rejection):
        updated = orchestrator.decide_rejection_review(
            ctx(HSSE_OFFICER), pending_rejection.id, "reject_rejection",
        )
        assert updated.status == "pending_dept_rep_approval"
        history = orchestrator.history(ctx(HSSE_OFFICER), pending_rejection.id)
        assert history[-1].action == "rejection_review_reject"

    def test_unknown_decision_is_refused(self, orchestrator, ctx, pending_rejection):
        with pytest.raises(InvalidDecisionError):
            orchestrator.decide_rejection_review(ctx(HSSE_OFFICER), pending_rejection.id, "maybe")

    def test_dept_rep_cannot_review_own_rejection(self, orchestrator, ctx, pending_rejection):
        with pytest.raises(PermissionDeniedError):
            orchestrator.decide_rejection_review(
                ctx(DEPT_REP), pending_rejection.id, "approve_rejection",
            )


class TestEscalationReview:

    @pytest.fixture
    def pending_escalation(self, orchestrator, ctx, observation_at_dept_rep):
        event = observation_at_dept_rep(severity=3)
        return orchestrator.request_escalation(ctx(DEPT_REP), event.id, LONG_NOTES)

    def test_reject_requires_notes(self, orchestrator, ctx, pending_escalation):
        with pytest.raises(TextTooShortError):
            orchestrator.decide_escalation_review(ctx(HSSE_OFFICER), pending_escalation.id, "reject")

    def test_reject_returns_to_dept_rep(self, orchestrator, ctx, pending_escalation):
        result = orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "reject", notes=LONG_NOTES,
        )
        assert result.event.status == "pending_dept_rep_approval"
        assert result.incident is None
        assert result.decision.decision == "reject"
        assert result.decision.notes == LONG_NOTES

    def test_accept_sends_to_validation(self, orchestrator, ctx, pending_escalation):
        result = orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "accept_observation",
        )
        assert result.event.status == "pending_hsse_validation"

    def test_upgrade_requires_investigator(self, orchestrator, ctx, pending_escalation):
        with pytest.raises(MissingInvestigatorError):
            orchestrator.decide_escalation_review(
                ctx(HSSE_OFFICER), pending_escalation.id, "upgrade_incident",
            )
        assert orchestrator.list_events(ctx(HSSE_OFFICER), event_type="incident") == []

    def test_upgrade_creates_incident_and_terminates_observation(
        self, orchestrator, ctx, pending_escalation,
    ):
        result = orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "upgrade_incident",
            investigator_id=INVESTIGATOR,
        )
        source, incident = result.event, result.incident

        assert source.status == "upgraded"
        assert source.upgraded_to_event_id == incident.id
        assert incident.event_type == "incident"
        assert incident.status == "investigation_in_progress"
        assert incident.source_event_id == source.id
        assert incident.investigator_id == INVESTIGATOR
        assert incident.severity == source.severity
        assert incident.reference_code == "INC-2026-00001"
        assert result.decision.resulting_event_id == incident.id

    def test_upgrade_writes_one_entry_on_the_source(self, orchestrator, ctx, pending_escalation):
        before = len(orchestrator.history(ctx(HSSE_OFFICER), pending_escalation.id))
        result = orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "upgrade_incident",
            investigator_id=INVESTIGATOR,
        )
        history = orchestrator.history(ctx(HSSE_OFFICER), pending_escalation.id)
        assert len(history) == before + 1
        assert history[-1].action == "escalation_review_upgrade_incident"
        assert history[-1].payload["incident_reference_code"] == result.incident.reference_code
        assert len(orchestrator.history(ctx(HSSE_OFFICER), result.incident.id)) == 1

    def test_incident_trail_opens_with_the_upgrade(self, orchestrator, ctx, pending_escalation):
        result = orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "upgrade_incident",
            investigator_id=INVESTIGATOR,
        )
        orchestrator.submit_for_validation(ctx(INVESTIGATOR), result.incident.id)

        history = orchestrator.history(ctx(INVESTIGATOR), result.incident.id)
        assert [e.action for e in history] == [
            "escalation_review_upgrade_incident", "submit_for_validation",
        ]
        assert history[0].event_id == pending_escalation.id
        assert history[0].new_value == "upgraded"
        assert history[1].event_id == result.incident.id

    def test_upgraded_observation_is_terminal(self, orchestrator, ctx, pending_escalation):
        orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "upgrade_incident",
            investigator_id=INVESTIGATOR,
        )
        assert orchestrator.available_commands(ctx(HSSE_OFFICER), pending_escalation.id) == ()

    def test_decisions_are_recorded(self, orchestrator, ctx, pending_escalation, deterministic_clock):
        orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "reject", notes=LONG_NOTES,
        )
        deterministic_clock.advance(60)
        orchestrator.request_escalation(ctx(DEPT_REP), pending_escalation.id, LONG_NOTES)
        orchestrator.decide_escalation_review(
            ctx(HSSE_OFFICER), pending_escalation.id, "accept_observation",
        )
        decisions = orchestrator.escalation_decisions(ctx(HSSE_OFFICER), pending_escalation.id)
        assert [d.decision for d in decisions] == ["reject", "accept_observation"]


class TestHsseValidation:

    def test_accept_returns_to_investigation(self, orchestrator, ctx, event_under_investigation):
        event = event_under_investigation(severity=3)
        orchestrator.submit_for_validation(ctx(INVESTIGATOR), event.id)
        updated = orchestrator.decide_hsse_validation(ctx(HSSE_OFFICER), event.id, "accept")
        assert updated.status == "investigation_in_progress"
        assert updated.hsse_validation_status == "accepted"

    def test_reject_returns_to_dept_rep(self, orchestrator, ctx, event_under_investigation):
        event = event_under_investigation(severity=3)
        orchestrator.submit_for_validation(ctx(INVESTIGATOR), event.id)
        updated = orchestrator.decide_hsse_validation(
            ctx(HSSE_OFFICER), event.id, "reject", notes="Evidence incomplete",
        )
        assert updated.status == "pending_dept_rep_approval"
        assert updated.hsse_validation_status == "rejected"

    def test_investigator_cannot_validate(self, orchestrator, ctx, event_under_investigation):
        event = event_under_investigation(severity=3)
        orchestrator.submit_for_validation(ctx(INVESTIGATOR), event.id)
        with pytest.raises(PermissionDeniedError):
            orchestrator.decide_hsse_validation(ctx(INVESTIGATOR), event.id, "accept")
