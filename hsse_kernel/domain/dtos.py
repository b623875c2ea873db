"""
Data Transfer Objects (``hsse_kernel.domain.dtos``).

Responsibility
--------------
Immutable value objects that cross the boundary between the orchestrator
and its callers.  ORM models convert to these via ``to_dto()``; callers
never receive live ORM instances.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4


class RootCauseKind(str, Enum):
    ROOT_CAUSE = "root_cause"
    CONTRIBUTING_FACTOR = "contributing_factor"


@dataclass(frozen=True)
class WorkflowContext:
    """Explicit caller context passed into every orchestrator call.

    Nothing about the current user or tenant is read from ambient state.
    """

    tenant_id: str
    actor_id: str
    correlation_id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        if not self.tenant_id:
            raise ValueError("tenant_id is required")
        if not self.actor_id:
            raise ValueError("actor_id is required")


@dataclass(frozen=True)
class SafetyEvent:
    id: UUID
    tenant_id: str
    reference_code: str
    event_type: str
    severity: int
    status: str
    reporter_id: str
    title: str
    description: str | None
    investigator_id: str | None
    due_date: date | None
    closure_requires_manager_close: bool
    hsse_validation_status: str
    closure_outcome: str | None
    violation_status: str
    penalty_enforceable: bool
    source_event_id: UUID | None
    upgraded_to_event_id: UUID | None
    created_at: datetime
    closed_at: datetime | None
    original_severity: int | None = None
    severity_pending_approval: bool = False
    severity_change_justification: str | None = None
    severity_approved_by: str | None = None
    closure_requested_by: str | None = None
    closure_request_notes: str | None = None
    closure_rejection_notes: str | None = None


@dataclass(frozen=True)
class RootCause:
    id: UUID
    tenant_id: str
    event_id: UUID
    kind: str
    description: str
    created_at: datetime


@dataclass(frozen=True)
class CorrectiveAction:
    id: UUID
    tenant_id: str
    event_id: UUID
    root_cause_id: UUID | None
    owner_id: str
    title: str
    status: str
    due_date: date
    return_count: int
    open_extension_request_id: UUID | None


@dataclass(frozen=True)
class ExtensionRequest:
    id: UUID
    tenant_id: str
    action_id: UUID
    event_id: UUID
    requester_id: str
    current_due_date: date
    requested_due_date: date
    reason: str
    status: str
    approval_chain: tuple[str, ...]
    current_level: int
    decided_by: str | None
    decision_notes: str | None
    created_at: datetime
    resolved_at: datetime | None


@dataclass(frozen=True)
class EscalationDecision:
    id: UUID
    tenant_id: str
    event_id: UUID
    decision: str
    decided_by: str
    notes: str | None
    resulting_event_id: UUID | None
    decided_at: datetime


@dataclass(frozen=True)
class EscalationReviewResult:
    """Outcome of an escalation review.

    ``incident`` is set only when the observation was upgraded.
    """

    event: SafetyEvent
    decision: EscalationDecision
    incident: SafetyEvent | None = None


@dataclass(frozen=True)
class AuditLogEntry:
    id: UUID
    tenant_id: str
    seq: int
    event_id: UUID
    entity_type: str
    entity_id: UUID
    actor_id: str
    action: str
    old_value: str | None
    new_value: str | None
    notes: str | None
    timestamp: datetime
    payload: dict
    hash: str
    prev_hash: str | None

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None


@dataclass(frozen=True)
class NotificationIntent:
    """A request to tell people something, dispatched after commit."""

    event_id: str
    topic: str
    recipients: tuple[str, ...]
    channel_hints: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowEventRecord:
    """One structured event per successful orchestrator call."""

    tenant_id: str
    correlation_id: str
    entity_type: str
    entity_id: str
    event_id: str
    action: str
    old_status: str | None
    new_status: str | None
    actor_id: str
    notes: str | None
    occurred_at: datetime
