"""
External collaborator ports (``hsse_kernel.domain.ports``).

Responsibility
--------------
Protocols for the collaborators the engine consumes but does not own:

* ``AuthorizationGuard`` -- authoritative, synchronous capability check.
  Every orchestrator operation consults it through a single call shape;
  there are no per-screen permission helpers.
* ``Notifier`` -- fire-and-forget delivery of notification intents.
  Retries and channel mechanics live entirely behind this port.

Architecture position
---------------------
**Kernel domain layer** -- pure protocol definitions.  ZERO I/O.
Implementations live in ``hsse_services``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence, runtime_checkable


class Capability(str, Enum):
    """Everything an actor may be authorized to do."""

    SUBMIT_EVENT = "submit_event"
    TRIAGE_EVENT = "triage_event"
    ASSIGN_INVESTIGATOR = "assign_investigator"
    SELF_CLOSE = "self_close"
    DEPT_REP_REVIEW = "dept_rep_review"
    REVIEW_ESCALATION = "review_escalation"
    REVIEW_REJECTION = "review_rejection"
    VALIDATE_EVENT = "validate_event"
    INVESTIGATE = "investigate"
    REQUEST_CLOSURE = "request_closure"
    CLOSE_AS_MANAGER = "close_as_manager"
    APPROVE_CONTRACT_VIOLATION = "approve_contract_violation"
    WORK_ACTION = "work_action"
    VERIFY_ACTION = "verify_action"
    REQUEST_EXTENSION = "request_extension"
    APPROVE_EXTENSION_LINE = "approve_extension_line"
    APPROVE_EXTENSION_HSSE = "approve_extension_hsse"
    APPROVE_SEVERITY_CHANGE = "approve_severity_change"


@dataclass(frozen=True)
class EventContext:
    """What an authorization decision may look at about the target event."""

    tenant_id: str
    event_id: str
    event_type: str
    severity: int
    status: str
    reporter_id: str
    investigator_id: str | None = None


@runtime_checkable
class AuthorizationGuard(Protocol):
    """Authoritative capability check, consumed synchronously."""

    def can_perform(
        self,
        actor_id: str,
        capability: Capability,
        event_context: EventContext | None,
    ) -> bool: ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget notification delivery."""

    def notify(
        self,
        event_id: str,
        topic: str,
        recipients: Sequence[str],
        channel_hints: Sequence[str],
    ) -> None: ...
