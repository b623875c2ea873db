"""Closure Gate evaluation: checklist plus root-cause coverage."""

import pytest

from hsse_kernel.domain.closure import (
    CHECKLIST_LABELS,
    ClosureChecklist,
    RootCauseCoverage,
    evaluate_closure_gate,
)
from hsse_kernel.domain.lifecycle import ActionStatus


def coverage(*statuses, kind="root_cause", description="Worn gasket", rc_id="rc-1"):
    return RootCauseCoverage(
        root_cause_id=rc_id,
        kind=kind,
        description=description,
        action_statuses=tuple(statuses),
    )


class TestChecklist:

    def test_complete_checklist_with_no_root_causes_is_allowed(self):
        result = evaluate_closure_gate(ClosureChecklist.complete(), [])
        assert result.allowed
        assert result.missing_items == ()

    def test_unticked_items_are_listed_by_label(self):
        checklist = ClosureChecklist(evidence_collected=True, witnesses_interviewed=True)
        result = evaluate_closure_gate(checklist, [])
        assert not result.allowed
        assert result.missing_items == (
            CHECKLIST_LABELS["root_cause_analysis_complete"],
            CHECKLIST_LABELS["actions_assigned"],
        )
        assert result.unmet_checklist == ("root_cause_analysis_complete", "actions_assigned")

    def test_required_items_limit_what_is_checked(self):
        checklist = ClosureChecklist(evidence_collected=True)
        result = evaluate_closure_gate(checklist, [], required_items=["evidence_collected"])
        assert result.allowed

    def test_from_mapping_rejects_unknown_items(self):
        with pytest.raises(ValueError, match="photos_taken"):
            ClosureChecklist.from_mapping({"photos_taken": True})


class TestCoverage:

    @pytest.mark.parametrize("status", [ActionStatus.VERIFIED, ActionStatus.CLOSED])
    def test_verified_or_closed_action_covers(self, status):
        result = evaluate_closure_gate(
            ClosureChecklist.complete(), [coverage(ActionStatus.ASSIGNED, status)],
        )
        assert result.allowed

    @pytest.mark.parametrize("status", [
        ActionStatus.ASSIGNED,
        ActionStatus.IN_PROGRESS,
        ActionStatus.COMPLETED,
        ActionStatus.RETURNED_FOR_CORRECTION,
    ])
    def test_open_action_does_not_cover(self, status):
        result = evaluate_closure_gate(ClosureChecklist.complete(), [coverage(status)])
        assert not result.allowed
        assert result.uncovered_root_causes == ("rc-1",)

    def test_contributing_factor_without_action_is_named(self):
        result = evaluate_closure_gate(
            ClosureChecklist.complete(),
            [coverage(kind="contributing_factor", description="Poor lighting")],
        )
        assert result.missing_items == (
            "Contributing factor 'Poor lighting' has no verified or closed corrective action",
        )

    def test_checklist_labels_come_before_coverage_labels(self):
        result = evaluate_closure_gate(
            ClosureChecklist(True, True, True, False), [coverage()],
        )
        assert result.missing_items[0] == CHECKLIST_LABELS["actions_assigned"]
        assert "Worn gasket" in result.missing_items[1]
