"""ApprovalOrchestrator: corrective actions, extensions and overdue feeds."""

from datetime import timedelta

import pytest

from hsse_kernel.exceptions import (
    ExtensionAlreadyDecidedError,
    GuardFailedError,
    InvalidDecisionError,
    InvalidTransitionError,
    PermissionDeniedError,
)
from tests.actors import ACTION_OWNER, COMPLETE_CHECKLIST, HSSE_MANAGER, INVESTIGATOR, LINE_MANAGER

REASON = "Replacement part is on back order"


class TestActionLifecycle:

    def test_owner_works_the_action(self, orchestrator, ctx, open_action):
        _, action = open_action()
        started = orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        assert started.status == "in_progress"
        completed = orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
        assert completed.status == "completed"

    def test_non_owner_cannot_start(self, orchestrator, ctx, open_action):
        _, action = open_action()
        with pytest.raises(GuardFailedError):
            orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "start")

    def test_return_for_correction_counts(self, orchestrator, ctx, open_action):
        event, action = open_action()
        for _ in range(2):
            orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
            orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
            returned = orchestrator.transition_action(
                ctx(INVESTIGATOR), action.id, "return_for_correction", "Photo evidence missing",
            )
        assert returned.status == "returned_for_correction"
        assert returned.return_count == 2

        actions = [e.action for e in orchestrator.history(ctx(INVESTIGATOR), event.id)]
        assert actions.count("action_returned_for_correction") == 2
        assert "action_resumed" in actions

    def test_verified_action_can_be_closed(self, orchestrator, ctx, open_action):
        _, action = open_action()
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
        orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "verify")
        closed = orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "close")
        assert closed.status == "closed"

    def test_owner_cannot_verify_own_work(self, orchestrator, ctx, open_action):
        _, action = open_action()
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
        with pytest.raises(PermissionDeniedError):
            orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "verify")

    def test_cannot_skip_states(self, orchestrator, ctx, open_action):
        _, action = open_action()
        with pytest.raises(InvalidTransitionError):
            orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "verify")

    def test_unknown_command(self, orchestrator, ctx, open_action):
        _, action = open_action()
        with pytest.raises(InvalidDecisionError):
            orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "abandon")

    def test_actions_listed_for_event(self, orchestrator, ctx, open_action):
        event, action = open_action()
        assert [a.id for a in orchestrator.list_actions(ctx(INVESTIGATOR), event.id)] == [action.id]


class TestExtensions:

    def test_request_and_approve(self, orchestrator, ctx, open_action, deterministic_clock):
        event, action = open_action()
        new_date = deterministic_clock.today() + timedelta(days=45)
        request = orchestrator.request_extension(ctx(ACTION_OWNER), action.id, new_date, REASON)
        assert request.status == "pending"
        assert request.approval_chain == ("approve_extension_hsse",)

        decided = orchestrator.decide_extension(ctx(HSSE_MANAGER), request.id, "approve")
        assert decided.status == "approved"
        assert decided.decided_by == HSSE_MANAGER

        (updated,) = orchestrator.list_actions(ctx(ACTION_OWNER), event.id)
        assert updated.due_date == new_date
        assert updated.open_extension_request_id is None

    def test_line_manager_not_in_default_chain(self, orchestrator, ctx, open_action, deterministic_clock):
        _, action = open_action()
        request = orchestrator.request_extension(
            ctx(ACTION_OWNER), action.id, deterministic_clock.today() + timedelta(days=45), REASON,
        )
        with pytest.raises(PermissionDeniedError):
            orchestrator.decide_extension(ctx(LINE_MANAGER), request.id, "approve")

    def test_decided_request_is_final(self, orchestrator, ctx, open_action, deterministic_clock):
        event, action = open_action()
        request = orchestrator.request_extension(
            ctx(ACTION_OWNER), action.id, deterministic_clock.today() + timedelta(days=45), REASON,
        )
        orchestrator.decide_extension(ctx(HSSE_MANAGER), request.id, "reject", "Not justified")
        with pytest.raises(ExtensionAlreadyDecidedError):
            orchestrator.decide_extension(ctx(HSSE_MANAGER), request.id, "approve")

        (unchanged,) = orchestrator.list_actions(ctx(ACTION_OWNER), event.id)
        assert unchanged.due_date == action.due_date

    def test_requests_listed_for_action(self, orchestrator, ctx, open_action, deterministic_clock):
        _, action = open_action()
        request = orchestrator.request_extension(
            ctx(ACTION_OWNER), action.id, deterministic_clock.today() + timedelta(days=45), REASON,
        )
        listed = orchestrator.list_extension_requests(ctx(HSSE_MANAGER), action.id)
        assert [r.id for r in listed] == [request.id]


class TestClosedEventFreezesActions:

    @pytest.fixture
    def closed_with_action(self, orchestrator, ctx, open_action):
        event, action = open_action()
        orchestrator.request_closure(ctx(INVESTIGATOR), event.id, COMPLETE_CHECKLIST)
        return event, action

    def test_action_cannot_move(self, orchestrator, ctx, closed_with_action):
        event, action = closed_with_action
        with pytest.raises(InvalidTransitionError) as exc_info:
            orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        assert exc_info.value.current_status == "closed"
        assert exc_info.value.command == "action_start"
        (listed,) = orchestrator.list_actions(ctx(INVESTIGATOR), event.id)
        assert listed.status == "assigned"

    def test_extension_cannot_be_requested(self, orchestrator, ctx, closed_with_action, deterministic_clock):
        event, action = closed_with_action
        with pytest.raises(InvalidTransitionError):
            orchestrator.request_extension(
                ctx(ACTION_OWNER), action.id, deterministic_clock.today() + timedelta(days=30), REASON,
            )
        assert orchestrator.history(ctx(INVESTIGATOR), event.id)[-1].action == "closure_completed"

    def test_pending_extension_cannot_be_decided(self, orchestrator, ctx, open_action, deterministic_clock):
        event, action = open_action()
        request = orchestrator.request_extension(
            ctx(ACTION_OWNER), action.id, deterministic_clock.today() + timedelta(days=30), REASON,
        )
        orchestrator.request_closure(ctx(INVESTIGATOR), event.id, COMPLETE_CHECKLIST)

        with pytest.raises(InvalidTransitionError):
            orchestrator.decide_extension(ctx(HSSE_MANAGER), request.id, "approve")
        (listed,) = orchestrator.list_actions(ctx(INVESTIGATOR), event.id)
        assert listed.due_date == action.due_date


class TestOverdueActions:

    def test_actions_become_overdue_after_due_date(self, orchestrator, ctx, open_action, deterministic_clock):
        _, action = open_action(due_in_days=3)
        assert orchestrator.find_overdue_actions(ctx(HSSE_MANAGER)) == []

        deterministic_clock.advance_days(3)
        assert orchestrator.find_overdue_actions(ctx(HSSE_MANAGER)) == []

        deterministic_clock.advance_days(1)
        assert [a.id for a in orchestrator.find_overdue_actions(ctx(HSSE_MANAGER))] == [action.id]

    def test_verified_actions_are_not_overdue(self, orchestrator, ctx, open_action, deterministic_clock):
        _, action = open_action(due_in_days=3)
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
        orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "verify")

        as_of = deterministic_clock.today() + timedelta(days=10)
        assert orchestrator.find_overdue_actions(ctx(HSSE_MANAGER), as_of=as_of) == []
