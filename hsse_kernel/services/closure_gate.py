"""
ClosureGateService -- loads coverage and evaluates the Closure Gate.

Responsibility:
    ``evaluate`` answers "may this event be submitted for closure?" without
    mutating anything.  ``enforce`` raises the typed error for the first
    unmet precondition, in this order:

        1. severity change pending       -> SeverityChangePendingError
        2. checklist incomplete          -> ChecklistIncompleteError
        3. severity >= 3, not validated  -> HsseValidationRequiredError
        4. uncovered root cause/factor   -> ActionCoverageError

Architecture position:
    Kernel > Services.  The rules themselves live in domain/closure.py.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.closure import (
    ClosureChecklist,
    ClosureGateResult,
    RootCauseCoverage,
    evaluate_closure_gate,
)
from hsse_kernel.domain.lifecycle import ActionStatus, HsseValidationStatus
from hsse_kernel.domain.severity import resolve_policy
from hsse_kernel.exceptions import (
    ActionCoverageError,
    ChecklistIncompleteError,
    HsseValidationRequiredError,
    SeverityChangePendingError,
)
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.event import SafetyEventModel
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.loaders import AggregateLoader

logger = get_logger("services.closure_gate")


class ClosureGateService(BaseService):

    def __init__(
        self,
        session: Session,
        required_items: Sequence[str] | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._loader = AggregateLoader(session)
        self._required_items = tuple(required_items) if required_items is not None else None

    def coverage(self, tenant_id: str, event_id: UUID) -> list[RootCauseCoverage]:
        statuses: dict[UUID, list[ActionStatus]] = defaultdict(list)
        for action in self._loader.actions_for_event(tenant_id, event_id):
            if action.root_cause_id is not None:
                statuses[action.root_cause_id].append(ActionStatus(action.status))

        return [
            RootCauseCoverage(
                root_cause_id=str(rc.id),
                kind=rc.kind,
                description=rc.description,
                action_statuses=tuple(statuses.get(rc.id, ())),
            )
            for rc in self._loader.root_causes(tenant_id, event_id)
        ]

    def evaluate(
        self,
        tenant_id: str,
        event_id: UUID,
        checklist: ClosureChecklist,
    ) -> ClosureGateResult:
        """Checklist + coverage verdict for an event.  Never mutates."""
        self._loader.event(tenant_id, event_id)
        result = evaluate_closure_gate(
            checklist, self.coverage(tenant_id, event_id), self._required_items,
        )
        logger.debug(
            "closure_gate_evaluated",
            extra={"allowed": result.allowed, "missing_count": len(result.missing_items)},
        )
        return result

    def enforce(self, event: SafetyEventModel, checklist: ClosureChecklist) -> ClosureGateResult:
        if event.severity_pending_approval:
            raise SeverityChangePendingError(str(event.id), "request_closure")
        result = evaluate_closure_gate(
            checklist, self.coverage(event.tenant_id, event.id), self._required_items,
        )
        # missing_items lists checklist labels first, then coverage labels
        split = len(result.unmet_checklist)
        if split:
            raise ChecklistIncompleteError(str(event.id), list(result.missing_items[:split]))

        policy = resolve_policy(event.severity)
        if (
            policy.requires_expert_validation
            and event.hsse_validation_status != HsseValidationStatus.ACCEPTED.value
        ):
            raise HsseValidationRequiredError(
                str(event.id), event.severity, event.hsse_validation_status,
            )

        if result.uncovered_root_causes:
            raise ActionCoverageError(str(event.id), list(result.missing_items[split:]))
        return result
