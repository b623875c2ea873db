"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Safety records are evidence.  Regulators and investigators must be able to
trust that the audit trail shows every change, and that events are never
quietly removed.  SQLAlchemy fires mapper events before UPDATE/DELETE
statements reach the database; we intercept them here:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|--------------------------------------------------
AuditLogEntry       | ALWAYS immutable, never deleted
EscalationDecision  | ALWAYS immutable, never deleted
SafetyEvent         | Never physically deleted (soft delete via deleted_at)
CorrectiveAction    | Never physically deleted
ExtensionRequest    | Never physically deleted
RootCause           | Never physically deleted

Bulk ``update()`` statements (the status store's compare-and-swap) do not
fire mapper events; the status store never targets the protected
append-only tables.

===============================================================================
USAGE
===============================================================================

    from hsse_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent; init_engine_from_url calls it

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from hsse_kernel.exceptions import ImmutabilityViolationError
from hsse_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_audit_entry_update(mapper, connection, target):
    """Audit log entries are immutable from creation."""
    _blocked(
        "AuditLogEntry", target, "UPDATE",
        "Audit log entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    _blocked(
        "AuditLogEntry", target, "DELETE",
        "Audit log entries cannot be deleted",
    )


def _check_escalation_decision_update(mapper, connection, target):
    _blocked(
        "EscalationDecision", target, "UPDATE",
        "Escalation decisions are append-only",
    )


def _check_escalation_decision_delete(mapper, connection, target):
    _blocked(
        "EscalationDecision", target, "DELETE",
        "Escalation decisions cannot be deleted",
    )


def _check_soft_delete_only(mapper, connection, target):
    """Aggregates are soft-deleted; physical deletes are refused."""
    _blocked(
        type(target).__name__, target, "DELETE",
        "Physical deletes are not allowed; set deleted_at instead",
    )


def _listener_table():
    from hsse_kernel.models.action import CorrectiveActionModel
    from hsse_kernel.models.audit_log import AuditLogEntryModel
    from hsse_kernel.models.escalation import EscalationDecisionModel
    from hsse_kernel.models.event import RootCauseModel, SafetyEventModel
    from hsse_kernel.models.extension import ExtensionRequestModel

    return [
        (AuditLogEntryModel, "before_update", _check_audit_entry_update),
        (AuditLogEntryModel, "before_delete", _check_audit_entry_delete),
        (EscalationDecisionModel, "before_update", _check_escalation_decision_update),
        (EscalationDecisionModel, "before_delete", _check_escalation_decision_delete),
        (SafetyEventModel, "before_delete", _check_soft_delete_only),
        (RootCauseModel, "before_delete", _check_soft_delete_only),
        (CorrectiveActionModel, "before_delete", _check_soft_delete_only),
        (ExtensionRequestModel, "before_delete", _check_soft_delete_only),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that must violate immutability on purpose
    to verify detection (e.g. audit chain tamper tests).
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
