"""
SeverityService -- investigator-proposed, manager-approved severity changes.

Responsibility:
    ``propose_severity_change`` applies the new severity straight away,
    remembers the severity it replaced in ``original_severity`` and flags
    the event as awaiting approval.  ``decide_severity_change`` either
    confirms the change or puts the original severity back.

    Every severity write re-derives ``closure_requires_manager_close`` from
    the severity it leaves behind, so the closure policy never disagrees
    with the severity on the row.

Architecture position:
    Kernel > Services.  Writes go through the status store's
    compare-and-swap with the status held constant, which gives the same
    race semantics and single audit entry as a transition.

Invariants enforced:
    - At most one pending change per event; a second proposal conflicts.
    - Closure cannot be requested while a change is pending (enforced by
      the closure gate).

Failure modes:
    - InvalidTransitionError when the event is not under investigation
      (propose) or is closed or upgraded (decide).
    - SeverityChangePendingError, NoPendingSeverityChangeError,
      StaleStatusError (ConflictError).
    - InvalidSeverityError, TextTooShortError, ValidationError.
    - PermissionDeniedError.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.decisions import (
    DEFAULT_MIN_TEXT_LENGTH,
    ApprovalDecision,
    require_min_length,
)
from hsse_kernel.domain.lifecycle import EventStatus
from hsse_kernel.domain.ports import Capability
from hsse_kernel.domain.severity import resolve_policy
from hsse_kernel.exceptions import (
    InvalidTransitionError,
    NoPendingSeverityChangeError,
    SeverityChangePendingError,
    ValidationError,
)
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.event import SafetyEventModel
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.lifecycle_service import LifecycleService
from hsse_kernel.services.status_store import StatusStore

logger = get_logger("services.severity")


class SeverityService(BaseService):

    def __init__(
        self,
        session: Session,
        lifecycle: LifecycleService,
        status_store: StatusStore,
        clock: Clock | None = None,
        min_justification_length: int = DEFAULT_MIN_TEXT_LENGTH,
    ):
        super().__init__(session, clock)
        self._lifecycle = lifecycle
        self._store = status_store
        self._min_justification_length = min_justification_length

    def propose_severity_change(
        self,
        event: SafetyEventModel,
        actor_id: str,
        new_severity: int,
        justification: str,
    ) -> SafetyEventModel:
        """
        Move the event to ``new_severity`` pending manager approval.

        Raises:
            InvalidTransitionError: the event is not under investigation.
            SeverityChangePendingError: an earlier proposal is undecided.
            InvalidSeverityError: ``new_severity`` outside 1..5.
            ValidationError: ``new_severity`` equals the current severity.
            TextTooShortError: justification shorter than the minimum.
        """
        self._lifecycle.require_open_event(event, "propose_severity_change")
        if event.status != EventStatus.INVESTIGATION_IN_PROGRESS.value:
            raise InvalidTransitionError("safety_event", event.status, "propose_severity_change")
        if event.severity_pending_approval:
            raise SeverityChangePendingError(str(event.id), "propose_severity_change")
        self._lifecycle.authorize(actor_id, Capability.INVESTIGATE, event)

        policy = resolve_policy(new_severity)
        if policy.severity == event.severity:
            raise ValidationError(f"Event is already severity {event.severity}")
        justification = require_min_length(
            "justification", justification, self._min_justification_length,
        )

        previous = event.severity
        self._store.compare_and_swap_status(
            event,
            event.status,
            event.status,
            actor_id=actor_id,
            action="severity_change_proposed",
            notes=justification,
            changes={
                "severity": policy.severity,
                "original_severity": previous,
                "severity_change_justification": justification,
                "severity_pending_approval": True,
                "severity_approved_by": None,
                "severity_approved_at": None,
                "closure_requires_manager_close": policy.requires_manager_close,
            },
            expected={"severity": previous, "severity_pending_approval": False},
            details={"from_severity": previous, "to_severity": policy.severity},
        )
        logger.info(
            "severity_change_proposed",
            extra={"from_severity": previous, "to_severity": policy.severity},
        )
        return event

    def decide_severity_change(
        self,
        event: SafetyEventModel,
        actor_id: str,
        decision: ApprovalDecision,
        notes: str | None = None,
    ) -> SafetyEventModel:
        """
        Confirm the pending severity, or revert to ``original_severity``.

        Raises:
            InvalidTransitionError: the event is closed or upgraded.
            NoPendingSeverityChangeError: nothing to decide.
            StaleStatusError: another manager decided concurrently.
        """
        self._lifecycle.require_open_event(event, "decide_severity_change")
        if not event.severity_pending_approval:
            raise NoPendingSeverityChangeError(str(event.id))
        self._lifecycle.authorize(actor_id, Capability.APPROVE_SEVERITY_CHANGE, event)

        proposed = event.severity
        if decision is ApprovalDecision.APPROVE:
            resulting = proposed
            action = "severity_change_approved"
            changes = {
                "severity_approved_by": actor_id,
                "severity_approved_at": self.clock.now(),
            }
        else:
            resulting = event.original_severity
            action = "severity_change_rejected"
            changes = {
                "severity": resulting,
                "severity_change_justification": None,
            }
        changes["severity_pending_approval"] = False
        changes["closure_requires_manager_close"] = (
            resolve_policy(resulting).requires_manager_close
        )

        self._store.compare_and_swap_status(
            event,
            event.status,
            event.status,
            actor_id=actor_id,
            action=action,
            notes=notes,
            changes=changes,
            expected={"severity": proposed, "severity_pending_approval": True},
            details={
                "proposed_severity": proposed,
                "original_severity": event.original_severity,
                "resulting_severity": resulting,
            },
        )
        logger.info(
            "severity_change_decided",
            extra={"decision": decision.value, "resulting_severity": resulting},
        )
        return event
