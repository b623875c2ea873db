"""
LifecycleService -- applies lifecycle transitions to loaded aggregates.

Responsibility:
    Glue between the pure transition tables and persistence.  For each
    command it (a) selects the transition from the current state, (b) lets
    the transition's severity/type guard veto it, (c) asks the
    Authorization Guard for the transition's capability, and only then
    (d) applies it through the status store's compare-and-swap, which also
    writes the audit entry.

    ``prepare_*`` runs (a)-(c) without writing anything so callers can add
    their own preconditions (closure checklist, coverage, note length)
    before ``apply_*`` commits to the change.

Architecture position:
    Kernel > Services.  Consumes the AuthorizationGuard port; never imports
    from hsse_services or hsse_config.

Failure modes:
    - InvalidTransitionError, GuardFailedError (from the domain planner).
    - PermissionDeniedError when the Authorization Guard says no.
    - StaleStatusError from the status store.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.dtos import AuditLogEntry
from hsse_kernel.domain.lifecycle import (
    TERMINAL_EVENT_STATUSES,
    ActionCommand,
    ActionFacts,
    EventCommand,
    EventFacts,
    EventStatus,
    EventType,
    plan_action_transition,
    plan_event_transition,
)
from hsse_kernel.domain.ports import AuthorizationGuard, Capability, EventContext
from hsse_kernel.domain.workflow import Transition
from hsse_kernel.exceptions import InvalidTransitionError, PermissionDeniedError
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.event import SafetyEventModel
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.status_store import StatusStore

logger = get_logger("services.lifecycle")


def event_context(event: SafetyEventModel) -> EventContext:
    return EventContext(
        tenant_id=event.tenant_id,
        event_id=str(event.id),
        event_type=event.event_type,
        severity=event.severity,
        status=event.status,
        reporter_id=event.reporter_id,
        investigator_id=event.investigator_id,
    )


class LifecycleService(BaseService):
    """Selects, authorizes and applies event and action transitions."""

    def __init__(
        self,
        session: Session,
        authorization_guard: AuthorizationGuard,
        status_store: StatusStore,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._guard = authorization_guard
        self._store = status_store

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(
        self,
        actor_id: str,
        capability: Capability | str,
        event: SafetyEventModel | None,
    ) -> None:
        """Raise PermissionDeniedError unless the guard grants ``capability``."""
        capability = Capability(capability)
        context = event_context(event) if event is not None else None
        if not self._guard.can_perform(actor_id, capability, context):
            logger.warning(
                "permission_denied",
                extra={
                    "capability": capability.value,
                    "entity_id": str(event.id) if event is not None else None,
                },
            )
            raise PermissionDeniedError(
                actor_id, capability.value, str(event.id) if event is not None else None,
            )

    def require_open_event(self, event: SafetyEventModel, operation: str) -> None:
        """Closed and upgraded events accept no further changes, nor do their children."""
        if EventStatus(event.status) in TERMINAL_EVENT_STATUSES:
            raise InvalidTransitionError("safety_event", event.status, operation)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def prepare_event(
        self,
        event: SafetyEventModel,
        command: EventCommand,
        actor_id: str,
    ) -> Transition:
        """Check state, guard and authorization; writes nothing."""
        facts = EventFacts(
            event_id=str(event.id),
            event_type=EventType(event.event_type),
            severity=event.severity,
            reporter_id=event.reporter_id,
            actor_id=actor_id,
        )
        transition = plan_event_transition(event.status, command, facts)
        self.authorize(actor_id, transition.capability, event)
        return transition

    def apply_event(
        self,
        event: SafetyEventModel,
        transition: Transition,
        actor_id: str,
        *,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = self._store.compare_and_swap_status(
            event,
            transition.from_state,
            transition.to_state,
            actor_id=actor_id,
            action=transition.audit_name,
            notes=notes,
            changes=changes,
            details=details,
        )
        logger.info(
            "transition_applied",
            extra={
                "entity_type": "safety_event",
                "entity_id": str(event.id),
                "command": getattr(transition.action, "value", transition.action),
                "from_state": entry.old_value,
                "to_state": entry.new_value,
            },
        )
        return entry

    def transition_event(
        self,
        event: SafetyEventModel,
        command: EventCommand,
        actor_id: str,
        *,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        transition = self.prepare_event(event, command, actor_id)
        return self.apply_event(
            event, transition, actor_id, notes=notes, changes=changes, details=details,
        )

    # ------------------------------------------------------------------
    # Corrective actions
    # ------------------------------------------------------------------

    def prepare_action(
        self,
        action: CorrectiveActionModel,
        event: SafetyEventModel,
        command: ActionCommand,
        actor_id: str,
    ) -> Transition:
        self.require_open_event(event, f"action_{ActionCommand(command).value}")
        facts = ActionFacts(
            action_id=str(action.id),
            owner_id=action.owner_id,
            actor_id=actor_id,
        )
        transition = plan_action_transition(action.status, command, facts)
        self.authorize(actor_id, transition.capability, event)
        return transition

    def apply_action(
        self,
        action: CorrectiveActionModel,
        transition: Transition,
        actor_id: str,
        *,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = self._store.compare_and_swap_status(
            action,
            transition.from_state,
            transition.to_state,
            actor_id=actor_id,
            action=transition.audit_name,
            notes=notes,
            changes=changes,
        )
        logger.info(
            "transition_applied",
            extra={
                "entity_type": "corrective_action",
                "entity_id": str(action.id),
                "command": getattr(transition.action, "value", transition.action),
                "from_state": entry.old_value,
                "to_state": entry.new_value,
            },
        )
        return entry
