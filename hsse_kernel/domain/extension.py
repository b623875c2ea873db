"""
Extension request lifecycle (``hsse_kernel.domain.extension``).

Responsibility
--------------
Pure rules for moving a corrective action's due date: the request status
machine and the approval chain walk.

Invariants enforced
-------------------
* ``EXTENSION_TRANSITIONS`` defines the only valid status transitions.
  Terminal states have no outgoing edges.
* The due date changes only on the approval that completes the chain.
  A decision on a terminal request is refused, so the change is applied
  exactly once.
* At most one pending request per action (enforced by the service and,
  on PostgreSQL, a partial unique index).

Approval chain
--------------
The chain is an ordered tuple of capabilities, one per level, supplied by
configuration.  The default is a single HSSE-manager level; configuring
``(APPROVE_EXTENSION_LINE, APPROVE_EXTENSION_HSSE)`` gives the two-level
line-manager-then-HSSE chain.  A rejection at any level is final.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hsse_kernel.domain.decisions import ApprovalDecision
from hsse_kernel.domain.ports import Capability
from hsse_kernel.exceptions import ExtensionAlreadyDecidedError


class ExtensionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


EXTENSION_TRANSITIONS: dict[ExtensionStatus, frozenset[ExtensionStatus]] = {
    ExtensionStatus.PENDING: frozenset({
        ExtensionStatus.PENDING,
        ExtensionStatus.APPROVED,
        ExtensionStatus.REJECTED,
    }),
    ExtensionStatus.APPROVED: frozenset(),
    ExtensionStatus.REJECTED: frozenset(),
}

TERMINAL_EXTENSION_STATUSES: frozenset[ExtensionStatus] = frozenset({
    ExtensionStatus.APPROVED,
    ExtensionStatus.REJECTED,
})

DEFAULT_APPROVAL_CHAIN: tuple[Capability, ...] = (Capability.APPROVE_EXTENSION_HSSE,)


@dataclass(frozen=True)
class ExtensionStep:
    """Result of applying one decision to a pending request."""

    capability: Capability
    from_level: int
    to_level: int
    new_status: ExtensionStatus
    applies_due_date: bool

    @property
    def audit_action(self) -> str:
        if self.new_status == ExtensionStatus.REJECTED:
            return "extension_rejected"
        if self.new_status == ExtensionStatus.APPROVED:
            return "extension_approved"
        return "extension_level_approved"


def plan_extension_decision(
    request_id: str,
    status: ExtensionStatus | str,
    current_level: int,
    decision: ApprovalDecision,
    chain: tuple[Capability, ...],
) -> ExtensionStep:
    """Work out what ``decision`` does to a request at ``current_level``.

    Raises:
        ExtensionAlreadyDecidedError: the request is already terminal.
    """
    status = ExtensionStatus(status)
    if status in TERMINAL_EXTENSION_STATUSES:
        raise ExtensionAlreadyDecidedError(request_id, status.value)
    if not chain:
        raise ValueError("Extension approval chain must have at least one level")

    level = min(current_level, len(chain) - 1)
    capability = chain[level]

    if decision == ApprovalDecision.REJECT:
        new_status, next_level = ExtensionStatus.REJECTED, level
    elif level + 1 >= len(chain):
        new_status, next_level = ExtensionStatus.APPROVED, level
    else:
        new_status, next_level = ExtensionStatus.PENDING, level + 1

    if new_status not in EXTENSION_TRANSITIONS[status]:
        raise ValueError(f"Illegal extension transition {status} -> {new_status}")

    return ExtensionStep(
        capability=capability,
        from_level=level,
        to_level=next_level,
        new_status=new_status,
        applies_due_date=new_status == ExtensionStatus.APPROVED,
    )
