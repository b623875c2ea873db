"""
Lifecycle State Machine (``hsse_kernel.domain.lifecycle``).

Responsibility
--------------
Declares every state, command and legal transition of the two aggregates
the engine drives -- safety events and corrective actions -- in one central
table each (``EVENT_WORKFLOW``, ``ACTION_WORKFLOW``), together with the
guard evaluators that apply the severity policy and ownership rules.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  Selecting a transition never
mutates anything; the lifecycle service applies the selected transition
through the status store's compare-and-swap.

Invariants enforced
-------------------
* Every legal transition is declared exactly once, here.
* ``closed`` and ``upgraded`` are terminal: no outgoing transitions.
* Validation order for an event command: (a) current state, (b) the
  severity/type guard, (c) authorization.  (a) and (b) live here; (c) is
  delegated to the Authorization Guard by the lifecycle service.

Failure modes
-------------
* ``InvalidTransitionError`` (ConflictError) naming state and command.
* ``GuardFailedError`` (InvariantViolationError) naming the guard.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hsse_kernel.domain.ports import Capability
from hsse_kernel.domain.severity import resolve_policy
from hsse_kernel.domain.workflow import Guard, Transition, Workflow, plan_transition


# =========================================================================
# Enumerations
# =========================================================================


class EventType(str, Enum):
    OBSERVATION = "observation"
    INCIDENT = "incident"


class EventStatus(str, Enum):
    """Safety event lifecycle states."""

    SUBMITTED = "submitted"
    PENDING_DEPT_REP_APPROVAL = "pending_dept_rep_approval"
    PENDING_HSSE_ESCALATION_REVIEW = "pending_hsse_escalation_review"
    PENDING_HSSE_REJECTION_REVIEW = "pending_hsse_rejection_review"
    PENDING_HSSE_VALIDATION = "pending_hsse_validation"
    INVESTIGATION_IN_PROGRESS = "investigation_in_progress"
    PENDING_CONTRACT_CONTROLLER_APPROVAL = "pending_contract_controller_approval"
    PENDING_FINAL_CLOSURE = "pending_final_closure"
    CLOSED = "closed"
    UPGRADED = "upgraded"


TERMINAL_EVENT_STATUSES: frozenset[EventStatus] = frozenset({
    EventStatus.CLOSED,
    EventStatus.UPGRADED,
})


class HsseValidationStatus(str, Enum):
    NONE = "none"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ClosureOutcome(str, Enum):
    """Why a closed event is closed."""

    RESOLVED = "resolved"
    REJECTED = "rejected"


class ViolationStatus(str, Enum):
    """Contractor violation sub-flow status carried on the event."""

    NONE = "none"
    PENDING = "pending"
    ENFORCEABLE = "enforceable"
    RETURNED_FOR_REWORK = "returned_for_rework"


class EventCommand(str, Enum):
    """Commands that move a safety event between states."""

    ROUTE_TO_DEPARTMENT = "route_to_department"
    ASSIGN_INVESTIGATOR = "assign_investigator"
    SELF_CLOSE = "self_close"
    REQUEST_ESCALATION = "request_escalation"
    REJECT_OBSERVATION = "reject_observation"
    SUBMIT_FOR_VALIDATION = "submit_for_validation"
    ESCALATION_REJECT = "escalation_reject"
    ESCALATION_ACCEPT = "escalation_accept"
    ESCALATION_UPGRADE = "escalation_upgrade"
    REJECTION_APPROVE = "rejection_approve"
    REJECTION_OVERTURN = "rejection_overturn"
    VALIDATION_ACCEPT = "validation_accept"
    VALIDATION_REJECT = "validation_reject"
    REQUEST_CLOSURE = "request_closure"
    FINAL_CLOSURE_APPROVE = "final_closure_approve"
    FINAL_CLOSURE_REJECT = "final_closure_reject"
    SUBMIT_VIOLATION = "submit_violation"
    CONTRACT_APPROVE = "contract_approve"
    CONTRACT_REJECT = "contract_reject"


class ActionStatus(str, Enum):
    """Corrective action lifecycle states."""

    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    RETURNED_FOR_CORRECTION = "returned_for_correction"
    VERIFIED = "verified"
    CLOSED = "closed"


TERMINAL_ACTION_STATUSES: frozenset[ActionStatus] = frozenset({ActionStatus.CLOSED})

COVERING_ACTION_STATUSES: frozenset[ActionStatus] = frozenset({
    ActionStatus.VERIFIED,
    ActionStatus.CLOSED,
})
"""Only actions in these states count toward closure coverage."""


class ActionCommand(str, Enum):
    START = "start"
    COMPLETE = "complete"
    VERIFY = "verify"
    RETURN_FOR_CORRECTION = "return_for_correction"
    CLOSE = "close"


# =========================================================================
# Guards
# =========================================================================

OBSERVATION_ONLY = Guard(
    "observation_only", "Only observations take the department review path"
)
SELF_CLOSE_ALLOWED = Guard(
    "self_close_allowed", "Severity 1-2 and invoked by the reporter"
)
MANAGER_CLOSE_REQUIRED = Guard(
    "manager_close_required", "Severity requires a manager to approve final closure"
)
MANAGER_CLOSE_NOT_REQUIRED = Guard(
    "manager_close_not_required", "Investigator may close without manager approval"
)
OWNER_ONLY = Guard(
    "owner_only", "Only the action owner works the action"
)


@dataclass(frozen=True)
class EventFacts:
    """What the event guards need to know about an event and the caller."""

    event_id: str
    event_type: EventType
    severity: int
    reporter_id: str
    actor_id: str


@dataclass(frozen=True)
class ActionFacts:
    action_id: str
    owner_id: str
    actor_id: str


def evaluate_event_guard(guard: Guard, facts: EventFacts) -> str | None:
    policy = resolve_policy(facts.severity)
    if guard is OBSERVATION_ONLY:
        if facts.event_type != EventType.OBSERVATION:
            return f"event type is {EventType(facts.event_type).value}"
        return None
    if guard is SELF_CLOSE_ALLOWED:
        if not policy.self_close_allowed:
            return f"severity {facts.severity} does not allow self close"
        if facts.actor_id != facts.reporter_id:
            return "only the reporter may close on the spot"
        return None
    if guard is MANAGER_CLOSE_REQUIRED:
        return None if policy.requires_manager_close else "manager close not required"
    if guard is MANAGER_CLOSE_NOT_REQUIRED:
        return "manager close required" if policy.requires_manager_close else None
    raise ValueError(f"Unknown event guard: {guard.name}")


def evaluate_action_guard(guard: Guard, facts: ActionFacts) -> str | None:
    if guard is OWNER_ONLY:
        return None if facts.actor_id == facts.owner_id else "actor is not the action owner"
    raise ValueError(f"Unknown action guard: {guard.name}")


# =========================================================================
# Transition tables
# =========================================================================

_S = EventStatus
_C = EventCommand
_CAP = Capability


def _t(from_state, to_state, action, capability, guard=None, audit_action=None):
    return Transition(
        from_state=from_state,
        to_state=to_state,
        action=action,
        capability=capability,
        guard=guard,
        audit_action=audit_action,
    )


EVENT_WORKFLOW = Workflow(
    name="safety_event",
    description="Severity-gated lifecycle of an observation or incident",
    initial_state=_S.SUBMITTED,
    states=tuple(EventStatus),
    terminal_states=tuple(TERMINAL_EVENT_STATUSES),
    transitions=(
        # Triage
        _t(_S.SUBMITTED, _S.PENDING_DEPT_REP_APPROVAL, _C.ROUTE_TO_DEPARTMENT,
           _CAP.TRIAGE_EVENT, OBSERVATION_ONLY),
        _t(_S.SUBMITTED, _S.INVESTIGATION_IN_PROGRESS, _C.ASSIGN_INVESTIGATOR,
           _CAP.ASSIGN_INVESTIGATOR),
        _t(_S.SUBMITTED, _S.CLOSED, _C.SELF_CLOSE,
           _CAP.SELF_CLOSE, SELF_CLOSE_ALLOWED),
        # Department representative review
        _t(_S.PENDING_DEPT_REP_APPROVAL, _S.CLOSED, _C.SELF_CLOSE,
           _CAP.SELF_CLOSE, SELF_CLOSE_ALLOWED),
        _t(_S.PENDING_DEPT_REP_APPROVAL, _S.PENDING_HSSE_ESCALATION_REVIEW,
           _C.REQUEST_ESCALATION, _CAP.DEPT_REP_REVIEW, OBSERVATION_ONLY),
        _t(_S.PENDING_DEPT_REP_APPROVAL, _S.PENDING_HSSE_REJECTION_REVIEW,
           _C.REJECT_OBSERVATION, _CAP.DEPT_REP_REVIEW, OBSERVATION_ONLY),
        _t(_S.PENDING_DEPT_REP_APPROVAL, _S.PENDING_HSSE_VALIDATION,
           _C.SUBMIT_FOR_VALIDATION, _CAP.DEPT_REP_REVIEW),
        _t(_S.INVESTIGATION_IN_PROGRESS, _S.PENDING_HSSE_VALIDATION,
           _C.SUBMIT_FOR_VALIDATION, _CAP.INVESTIGATE),
        # HSSE escalation review
        _t(_S.PENDING_HSSE_ESCALATION_REVIEW, _S.PENDING_DEPT_REP_APPROVAL,
           _C.ESCALATION_REJECT, _CAP.REVIEW_ESCALATION,
           audit_action="escalation_review_reject"),
        _t(_S.PENDING_HSSE_ESCALATION_REVIEW, _S.PENDING_HSSE_VALIDATION,
           _C.ESCALATION_ACCEPT, _CAP.REVIEW_ESCALATION,
           audit_action="escalation_review_accept_observation"),
        _t(_S.PENDING_HSSE_ESCALATION_REVIEW, _S.UPGRADED,
           _C.ESCALATION_UPGRADE, _CAP.REVIEW_ESCALATION, OBSERVATION_ONLY,
           audit_action="escalation_review_upgrade_incident"),
        # HSSE rejection review
        _t(_S.PENDING_HSSE_REJECTION_REVIEW, _S.CLOSED,
           _C.REJECTION_APPROVE, _CAP.REVIEW_REJECTION,
           audit_action="rejection_review_approve"),
        _t(_S.PENDING_HSSE_REJECTION_REVIEW, _S.PENDING_DEPT_REP_APPROVAL,
           _C.REJECTION_OVERTURN, _CAP.REVIEW_REJECTION,
           audit_action="rejection_review_reject"),
        # HSSE validation
        _t(_S.PENDING_HSSE_VALIDATION, _S.INVESTIGATION_IN_PROGRESS,
           _C.VALIDATION_ACCEPT, _CAP.VALIDATE_EVENT,
           audit_action="hsse_validation_accept"),
        _t(_S.PENDING_HSSE_VALIDATION, _S.PENDING_DEPT_REP_APPROVAL,
           _C.VALIDATION_REJECT, _CAP.VALIDATE_EVENT,
           audit_action="hsse_validation_reject"),
        # Closure
        _t(_S.INVESTIGATION_IN_PROGRESS, _S.PENDING_FINAL_CLOSURE,
           _C.REQUEST_CLOSURE, _CAP.REQUEST_CLOSURE, MANAGER_CLOSE_REQUIRED,
           audit_action="closure_requested"),
        _t(_S.INVESTIGATION_IN_PROGRESS, _S.CLOSED,
           _C.REQUEST_CLOSURE, _CAP.REQUEST_CLOSURE, MANAGER_CLOSE_NOT_REQUIRED,
           audit_action="closure_completed"),
        _t(_S.PENDING_FINAL_CLOSURE, _S.CLOSED,
           _C.FINAL_CLOSURE_APPROVE, _CAP.CLOSE_AS_MANAGER,
           audit_action="final_closure_approved"),
        _t(_S.PENDING_FINAL_CLOSURE, _S.INVESTIGATION_IN_PROGRESS,
           _C.FINAL_CLOSURE_REJECT, _CAP.CLOSE_AS_MANAGER,
           audit_action="final_closure_rejected"),
        # Contractor violation
        _t(_S.INVESTIGATION_IN_PROGRESS, _S.PENDING_CONTRACT_CONTROLLER_APPROVAL,
           _C.SUBMIT_VIOLATION, _CAP.INVESTIGATE),
        _t(_S.PENDING_CONTRACT_CONTROLLER_APPROVAL, _S.INVESTIGATION_IN_PROGRESS,
           _C.CONTRACT_APPROVE, _CAP.APPROVE_CONTRACT_VIOLATION,
           audit_action="contract_controller_approved"),
        _t(_S.PENDING_CONTRACT_CONTROLLER_APPROVAL, _S.INVESTIGATION_IN_PROGRESS,
           _C.CONTRACT_REJECT, _CAP.APPROVE_CONTRACT_VIOLATION,
           audit_action="contract_controller_rejected"),
    ),
)

_A = ActionStatus
_AC = ActionCommand

ACTION_WORKFLOW = Workflow(
    name="corrective_action",
    description="Corrective action from assignment to verified closure",
    initial_state=_A.ASSIGNED,
    states=tuple(ActionStatus),
    terminal_states=tuple(TERMINAL_ACTION_STATUSES),
    transitions=(
        _t(_A.ASSIGNED, _A.IN_PROGRESS, _AC.START, _CAP.WORK_ACTION, OWNER_ONLY,
           audit_action="action_started"),
        _t(_A.RETURNED_FOR_CORRECTION, _A.IN_PROGRESS, _AC.START, _CAP.WORK_ACTION,
           OWNER_ONLY, audit_action="action_resumed"),
        _t(_A.IN_PROGRESS, _A.COMPLETED, _AC.COMPLETE, _CAP.WORK_ACTION, OWNER_ONLY,
           audit_action="action_completed"),
        _t(_A.COMPLETED, _A.VERIFIED, _AC.VERIFY, _CAP.VERIFY_ACTION,
           audit_action="action_verified"),
        _t(_A.COMPLETED, _A.RETURNED_FOR_CORRECTION, _AC.RETURN_FOR_CORRECTION,
           _CAP.VERIFY_ACTION, audit_action="action_returned_for_correction"),
        _t(_A.VERIFIED, _A.CLOSED, _AC.CLOSE, _CAP.VERIFY_ACTION,
           audit_action="action_closed"),
    ),
)


# =========================================================================
# Planning
# =========================================================================


def plan_event_transition(
    current_status: EventStatus | str,
    command: EventCommand | str,
    facts: EventFacts,
) -> Transition:
    """Select the event transition for ``command``; checks state then guard."""
    return plan_transition(
        EVENT_WORKFLOW,
        facts.event_id,
        EventStatus(current_status),
        EventCommand(command),
        lambda guard: evaluate_event_guard(guard, facts),
    )


def plan_action_transition(
    current_status: ActionStatus | str,
    command: ActionCommand | str,
    facts: ActionFacts,
) -> Transition:
    return plan_transition(
        ACTION_WORKFLOW,
        facts.action_id,
        ActionStatus(current_status),
        ActionCommand(command),
        lambda guard: evaluate_action_guard(guard, facts),
    )


def available_event_commands(status: EventStatus | str) -> tuple[EventCommand, ...]:
    return tuple(EventCommand(a) for a in EVENT_WORKFLOW.actions_from(EventStatus(status)))
