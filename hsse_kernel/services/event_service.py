"""
EventService -- creates aggregates: events, root causes, corrective actions.

Responsibility:
    Everything that inserts rather than swaps a status:

    * ``submit_event`` -- a new event in ``submitted`` with a per-tenant,
      per-year reference code (``OBS-2026-00001`` / ``INC-2026-00001``).
      Classifier suggestions arrive as ordinary input.
    * ``create_upgraded_incident`` -- the first half of an upgrade: a new
      incident in ``investigation_in_progress`` with a back-reference to
      the observation.  The caller terminates the source in the same
      transaction and writes the single audit entry for the operation.
    * ``record_root_cause`` / ``assign_corrective_action``.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - closure_requires_manager_close is derived from severity, never input.
    - Root causes and actions can only be added while the event is under
      investigation.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.dtos import RootCauseKind
from hsse_kernel.domain.lifecycle import (
    ActionStatus,
    EventStatus,
    EventType,
    HsseValidationStatus,
    ViolationStatus,
)
from hsse_kernel.domain.ports import Capability
from hsse_kernel.domain.severity import resolve_policy
from hsse_kernel.exceptions import InvalidTransitionError, ValidationError
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.audit_log import AuditEntityType
from hsse_kernel.models.event import RootCauseModel, SafetyEventModel
from hsse_kernel.services.audit_logger import AuditEntryDraft, AuditLogger
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.lifecycle_service import LifecycleService
from hsse_kernel.services.loaders import AggregateLoader
from hsse_kernel.services.sequence_service import SequenceService, reference_sequence_name

logger = get_logger("services.event")

REFERENCE_PREFIXES: dict[EventType, str] = {
    EventType.OBSERVATION: "OBS",
    EventType.INCIDENT: "INC",
}

_INVESTIGATION_STATES = frozenset({EventStatus.INVESTIGATION_IN_PROGRESS.value})


class EventService(BaseService):

    def __init__(
        self,
        session: Session,
        lifecycle: LifecycleService,
        audit_logger: AuditLogger,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._lifecycle = lifecycle
        self._audit = audit_logger
        self._sequences = SequenceService(session)
        self._loader = AggregateLoader(session)

    def _reference_code(self, tenant_id: str, event_type: EventType) -> str:
        prefix = REFERENCE_PREFIXES[event_type]
        year = self.clock.now().year
        n = self._sequences.next_value(reference_sequence_name(tenant_id, prefix, year))
        return f"{prefix}-{year}-{n:05d}"

    def _new_event(
        self,
        tenant_id: str,
        event_type: EventType,
        severity: int,
        reporter_id: str,
        title: str,
        description: str | None,
        status: EventStatus,
        **extra,
    ) -> SafetyEventModel:
        policy = resolve_policy(severity)
        now = self.clock.now()
        event = SafetyEventModel(
            tenant_id=tenant_id,
            reference_code=self._reference_code(tenant_id, event_type),
            event_type=event_type.value,
            severity=policy.severity,
            status=status.value,
            title=title,
            description=description,
            reporter_id=reporter_id,
            closure_requires_manager_close=policy.requires_manager_close,
            hsse_validation_status=HsseValidationStatus.NONE.value,
            violation_status=ViolationStatus.NONE.value,
            penalty_enforceable=False,
            severity_pending_approval=False,
            created_at=now,
            updated_at=now,
            **extra,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def submit_event(
        self,
        tenant_id: str,
        actor_id: str,
        event_type: EventType | str,
        severity: int,
        title: str,
        description: str | None = None,
    ) -> SafetyEventModel:
        """Create an event in ``submitted``; the actor is the reporter."""
        try:
            event_type = EventType(event_type)
        except ValueError:
            raise ValidationError(f"Unknown event type: {event_type!r}") from None
        if not (title or "").strip():
            raise ValidationError("title is required")
        resolve_policy(severity)
        self._lifecycle.authorize(actor_id, Capability.SUBMIT_EVENT, None)

        event = self._new_event(
            tenant_id, event_type, severity, actor_id, title.strip(), description,
            EventStatus.SUBMITTED,
        )
        self._audit.append(AuditEntryDraft(
            tenant_id=tenant_id,
            event_id=event.id,
            entity_type=AuditEntityType.SAFETY_EVENT.value,
            entity_id=event.id,
            actor_id=actor_id,
            action="event_submitted",
            new_value=EventStatus.SUBMITTED.value,
            details={
                "reference_code": event.reference_code,
                "event_type": event_type.value,
                "severity": event.severity,
            },
        ))
        logger.info(
            "event_submitted",
            extra={"reference_code": event.reference_code, "severity": event.severity},
        )
        return event

    def create_upgraded_incident(
        self,
        source: SafetyEventModel,
        investigator_id: str,
    ) -> SafetyEventModel:
        """New incident under investigation, back-referencing ``source``.

        Writes no audit entry; the upgrade operation records one entry on
        the source event naming the new incident.
        """
        incident = self._new_event(
            source.tenant_id,
            EventType.INCIDENT,
            source.severity,
            source.reporter_id,
            source.title,
            source.description,
            EventStatus.INVESTIGATION_IN_PROGRESS,
            investigator_id=investigator_id,
            source_event_id=source.id,
        )
        logger.info(
            "incident_created_from_upgrade",
            extra={
                "source_event_id": str(source.id),
                "incident_id": str(incident.id),
                "reference_code": incident.reference_code,
            },
        )
        return incident

    def _require_investigation(self, event: SafetyEventModel, operation: str) -> None:
        if event.status not in _INVESTIGATION_STATES:
            raise InvalidTransitionError("safety_event", event.status, operation)

    def record_root_cause(
        self,
        event: SafetyEventModel,
        actor_id: str,
        kind: RootCauseKind | str,
        description: str,
    ) -> RootCauseModel:
        self._require_investigation(event, "record_root_cause")
        self._lifecycle.authorize(actor_id, Capability.INVESTIGATE, event)
        try:
            kind = RootCauseKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown root cause kind: {kind!r}") from None
        if not (description or "").strip():
            raise ValidationError("description is required")

        now = self.clock.now()
        root_cause = RootCauseModel(
            tenant_id=event.tenant_id,
            event_id=event.id,
            kind=kind.value,
            description=description.strip(),
            created_at=now,
            updated_at=now,
        )
        self.session.add(root_cause)
        self.session.flush()

        self._audit.append(AuditEntryDraft(
            tenant_id=event.tenant_id,
            event_id=event.id,
            entity_type=AuditEntityType.ROOT_CAUSE.value,
            entity_id=root_cause.id,
            actor_id=actor_id,
            action=f"{kind.value}_recorded",
            notes=root_cause.description,
        ))
        return root_cause

    def assign_corrective_action(
        self,
        event: SafetyEventModel,
        actor_id: str,
        owner_id: str,
        title: str,
        due_date: date,
        root_cause_id: UUID | None = None,
    ) -> CorrectiveActionModel:
        self._require_investigation(event, "assign_corrective_action")
        self._lifecycle.authorize(actor_id, Capability.INVESTIGATE, event)
        if not owner_id:
            raise ValidationError("owner_id is required")
        if not (title or "").strip():
            raise ValidationError("title is required")
        if not isinstance(due_date, date):
            raise ValidationError("due_date is required")
        if root_cause_id is not None:
            self._loader.root_cause(event.tenant_id, event.id, root_cause_id)

        now = self.clock.now()
        action = CorrectiveActionModel(
            tenant_id=event.tenant_id,
            event_id=event.id,
            root_cause_id=root_cause_id,
            owner_id=owner_id,
            title=title.strip(),
            status=ActionStatus.ASSIGNED.value,
            due_date=due_date,
            return_count=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(action)
        self.session.flush()

        self._audit.append(AuditEntryDraft(
            tenant_id=event.tenant_id,
            event_id=event.id,
            entity_type=AuditEntityType.CORRECTIVE_ACTION.value,
            entity_id=action.id,
            actor_id=actor_id,
            action="action_assigned",
            new_value=ActionStatus.ASSIGNED.value,
            details={
                "owner_id": owner_id,
                "due_date": due_date,
                "root_cause_id": root_cause_id,
            },
        ))
        return action
