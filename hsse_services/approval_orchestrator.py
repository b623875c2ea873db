"""
hsse_services.approval_orchestrator -- one operation per workflow event.

Responsibility:
    The public face of the engine.  Every operation takes an explicit
    ``WorkflowContext`` (tenant, actor, correlation id), runs as one unit
    of work, and returns immutable DTOs.  Kernel services are created per
    unit of work and wired here; no kernel service creates another.

Architecture position:
    Services layer -- stateful orchestration over the kernel.  Consumes
    configuration from hsse_config and the external ports (Authorization
    Guard, Notifier).

Invariants enforced:
    - Exactly one audit entry per successful command, committed in the
      same transaction as the change it documents.  A failure rolls the
      whole unit of work back: no status change, no audit entry.
    - Per command, preconditions are checked in a fixed order: current
      state, severity/type guard, authorization, then the operation's own
      input and invariant checks.
    - Notifications and workflow events are dispatched only after commit;
      their failures are logged and never affect committed state.

Failure modes:
    - ValidationError subclasses for malformed input.
    - PermissionDeniedError when the Authorization Guard denies.
    - ConflictError subclasses for wrong state or lost races.
    - NotFoundError subclasses for unknown ids.
    - InvariantViolationError subclasses for policy and closure-gate
      violations.

Usage:
    orchestrator = ApprovalOrchestrator(
        session_factory=get_session_factory(),
        config=get_active_config(),
        role_provider=StaticRoleProvider({...}),
        notifier=my_notifier,
    )
    ctx = WorkflowContext(tenant_id="acme", actor_id="u-17")
    event = orchestrator.submit_event(ctx, "observation", 2, "Loose cable")
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Callable, Mapping, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from hsse_config.schema import HsseConfigurationSet
from hsse_kernel.db.engine import session_scope
from hsse_kernel.domain.clock import Clock, SystemClock
from hsse_kernel.domain.closure import ClosureChecklist, ClosureGateResult
from hsse_kernel.domain.decisions import (
    ApprovalDecision,
    ContractControllerDecision,
    EscalationReviewDecision,
    RejectionReviewDecision,
    ValidationDecision,
    parse_decision,
    require_min_length,
)
from hsse_kernel.domain.dtos import (
    AuditLogEntry,
    CorrectiveAction,
    EscalationDecision,
    EscalationReviewResult,
    ExtensionRequest,
    RootCause,
    SafetyEvent,
    WorkflowContext,
    WorkflowEventRecord,
)
from hsse_kernel.domain.lifecycle import (
    ActionCommand,
    ClosureOutcome,
    EventCommand,
    EventStatus,
    HsseValidationStatus,
    ViolationStatus,
    available_event_commands,
)
from hsse_kernel.domain.ports import AuthorizationGuard, Notifier
from hsse_kernel.exceptions import MissingInvestigatorError, ValidationError
from hsse_kernel.logging_config import LogContext, get_logger
from hsse_kernel.models.audit_log import AuditEntityType
from hsse_kernel.models.escalation import EscalationDecisionModel
from hsse_kernel.models.event import SafetyEventModel
from hsse_kernel.selectors.event_selector import EventSelector
from hsse_kernel.services.audit_logger import AuditLogger
from hsse_kernel.services.closure_gate import ClosureGateService
from hsse_kernel.services.event_service import EventService
from hsse_kernel.services.extension_service import ExtensionService
from hsse_kernel.services.lifecycle_service import LifecycleService
from hsse_kernel.services.loaders import AggregateLoader
from hsse_kernel.services.severity_service import SeverityService
from hsse_kernel.services.status_store import StatusStore
from hsse_services.authorization import RoleBasedAuthorizationGuard, RoleProvider
from hsse_services.events import WorkflowEventPublisher
from hsse_services.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationRouter,
    Participants,
)

logger = get_logger("services.approval_orchestrator")

R = TypeVar("R")


class _UnitOfWork:
    """Kernel services wired around one session."""

    def __init__(
        self,
        session: Session,
        guard: AuthorizationGuard,
        config: HsseConfigurationSet,
        clock: Clock,
    ):
        self.session = session
        self.audit = AuditLogger(session, clock)
        self.store = StatusStore(session, self.audit, clock)
        self.lifecycle = LifecycleService(session, guard, self.store, clock)
        self.events = EventService(session, self.lifecycle, self.audit, clock)
        self.extensions = ExtensionService(
            session,
            self.lifecycle,
            self.store,
            self.audit,
            clock,
            approval_chain=config.extension_approval_chain,
            min_reason_length=config.text_rules.extension_reason,
        )
        self.severity = SeverityService(
            session,
            self.lifecycle,
            self.store,
            clock,
            min_justification_length=config.text_rules.severity_change_justification,
        )
        self.closure_gate = ClosureGateService(session, config.closure_checklist, clock)
        self.loader = AggregateLoader(session)
        self.selector = EventSelector(session)

    def participants(self, entry: AuditLogEntry) -> Participants:
        event = self.loader.event(entry.tenant_id, entry.event_id)
        investigator_id = event.investigator_id
        if event.upgraded_to_event_id is not None:
            investigator_id = self.loader.event(
                entry.tenant_id, event.upgraded_to_event_id,
            ).investigator_id

        owner_id = None
        if entry.entity_type == AuditEntityType.CORRECTIVE_ACTION.value:
            owner_id = self.loader.action(entry.tenant_id, entry.entity_id).owner_id
        elif entry.entity_type == AuditEntityType.EXTENSION_REQUEST.value:
            request = self.loader.extension_request(entry.tenant_id, entry.entity_id)
            owner_id = self.loader.action(entry.tenant_id, request.action_id).owner_id

        return Participants(
            reporter_id=event.reporter_id,
            investigator_id=investigator_id,
            action_owner_id=owner_id,
        )


class ApprovalOrchestrator:
    """
    Executes workflow commands against the HSSE event aggregate.

    Contract:
        Receives the session factory, configuration and external ports
        via constructor injection.  ``authorization_guard`` defaults to a
        ``RoleBasedAuthorizationGuard`` over ``role_provider``; ``notifier``
        defaults to a ``LoggingNotifier``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: HsseConfigurationSet,
        role_provider: RoleProvider,
        authorization_guard: AuthorizationGuard | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        publisher: WorkflowEventPublisher | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._guard = authorization_guard or RoleBasedAuthorizationGuard(config, role_provider)
        self._router = NotificationRouter(config, role_provider)
        self._dispatcher = NotificationDispatcher(notifier or LoggingNotifier())
        self._clock = clock or SystemClock()
        self.publisher = publisher or WorkflowEventPublisher()

    # ------------------------------------------------------------------
    # Unit-of-work plumbing
    # ------------------------------------------------------------------

    def _command(
        self,
        ctx: WorkflowContext,
        operation: str,
        work: Callable[[_UnitOfWork], R],
        event_id: UUID | None = None,
    ) -> R:
        with LogContext.bind(
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            actor_id=ctx.actor_id,
            event_id=event_id,
            operation=operation,
        ):
            with session_scope(self._session_factory) as session:
                uow = _UnitOfWork(session, self._guard, self._config, self._clock)
                result = work(uow)
                outbox = [(entry, uow.participants(entry)) for entry in uow.audit.appended]

            logger.info(
                "operation_committed",
                extra={"audit_entries": len(outbox)},
            )
            self._after_commit(ctx, outbox)
            return result

    def _query(self, ctx: WorkflowContext, work: Callable[[_UnitOfWork], R]) -> R:
        with LogContext.bind(correlation_id=ctx.correlation_id, tenant_id=ctx.tenant_id):
            with session_scope(self._session_factory) as session:
                return work(_UnitOfWork(session, self._guard, self._config, self._clock))

    def _after_commit(
        self,
        ctx: WorkflowContext,
        outbox: list[tuple[AuditLogEntry, Participants]],
    ) -> None:
        intents = []
        records = []
        for entry, participants in outbox:
            intent = self._router.intent_for(str(entry.event_id), entry.action, participants)
            if intent is not None:
                intents.append(intent)
            records.append(WorkflowEventRecord(
                tenant_id=entry.tenant_id,
                correlation_id=ctx.correlation_id,
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id),
                event_id=str(entry.event_id),
                action=entry.action,
                old_status=entry.old_value,
                new_status=entry.new_value,
                actor_id=entry.actor_id,
                notes=entry.notes,
                occurred_at=entry.timestamp,
            ))
        self._dispatcher.dispatch(intents)
        self.publisher.publish(records)

    def _closed_changes(self, outcome: ClosureOutcome) -> dict[str, Any]:
        return {"closure_outcome": outcome.value, "closed_at": self._clock.now()}

    def _simple_command(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        command: EventCommand,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> SafetyEvent:
        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            uow.lifecycle.transition_event(
                event, command, ctx.actor_id, notes=notes, changes=changes,
            )
            return event.to_dto()

        return self._command(ctx, command.value, work, event_id)

    # ------------------------------------------------------------------
    # Intake and triage
    # ------------------------------------------------------------------

    def submit_event(
        self,
        ctx: WorkflowContext,
        event_type: str,
        severity: int,
        title: str,
        description: str | None = None,
    ) -> SafetyEvent:
        """Report a new observation or incident; the actor is the reporter."""

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.events.submit_event(
                ctx.tenant_id, ctx.actor_id, event_type, severity, title, description,
            )
            return event.to_dto()

        return self._command(ctx, "submit_event", work)

    def route_to_department(
        self, ctx: WorkflowContext, event_id: UUID, notes: str | None = None,
    ) -> SafetyEvent:
        return self._simple_command(ctx, event_id, EventCommand.ROUTE_TO_DEPARTMENT, notes)

    def assign_investigator(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        investigator_id: str | None,
        due_date: date | None = None,
    ) -> SafetyEvent:
        """Put a submitted event under investigation by ``investigator_id``.

        Raises:
            MissingInvestigatorError: no investigator given.
        """

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            transition = uow.lifecycle.prepare_event(
                event, EventCommand.ASSIGN_INVESTIGATOR, ctx.actor_id,
            )
            if not investigator_id:
                raise MissingInvestigatorError(str(event.id), "assign_investigator")
            changes: dict[str, Any] = {"investigator_id": investigator_id}
            if due_date is not None:
                changes["due_date"] = due_date
            uow.lifecycle.apply_event(event, transition, ctx.actor_id, changes=changes)
            return event.to_dto()

        return self._command(ctx, "assign_investigator", work, event_id)

    def self_close(
        self, ctx: WorkflowContext, event_id: UUID, notes: str | None = None,
    ) -> SafetyEvent:
        """Close a severity 1-2 event on the spot; reporter only."""
        return self._simple_command(
            ctx, event_id, EventCommand.SELF_CLOSE, notes,
            self._closed_changes(ClosureOutcome.RESOLVED),
        )

    # ------------------------------------------------------------------
    # Department representative review
    # ------------------------------------------------------------------

    def _dept_rep_decision(
        self, ctx: WorkflowContext, event_id: UUID, command: EventCommand, notes: str,
    ) -> SafetyEvent:
        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            transition = uow.lifecycle.prepare_event(event, command, ctx.actor_id)
            text = require_min_length("notes", notes, self._config.text_rules.dept_rep_notes)
            uow.lifecycle.apply_event(
                event, transition, ctx.actor_id,
                notes=text, changes={"dept_rep_notes": text},
            )
            return event.to_dto()

        return self._command(ctx, command.value, work, event_id)

    def request_escalation(self, ctx: WorkflowContext, event_id: UUID, notes: str) -> SafetyEvent:
        """Department rep asks HSSE to review an observation for escalation."""
        return self._dept_rep_decision(ctx, event_id, EventCommand.REQUEST_ESCALATION, notes)

    def reject_observation(self, ctx: WorkflowContext, event_id: UUID, notes: str) -> SafetyEvent:
        """Department rep proposes rejecting an observation; HSSE reviews."""
        return self._dept_rep_decision(ctx, event_id, EventCommand.REJECT_OBSERVATION, notes)

    def submit_for_validation(
        self, ctx: WorkflowContext, event_id: UUID, notes: str | None = None,
    ) -> SafetyEvent:
        return self._simple_command(ctx, event_id, EventCommand.SUBMIT_FOR_VALIDATION, notes)

    # ------------------------------------------------------------------
    # HSSE decisions
    # ------------------------------------------------------------------

    def decide_hsse_validation(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: ValidationDecision | str,
        notes: str | None = None,
    ) -> SafetyEvent:
        decision = parse_decision(ValidationDecision, decision, "decide_hsse_validation")
        if decision is ValidationDecision.ACCEPT:
            command, status = EventCommand.VALIDATION_ACCEPT, HsseValidationStatus.ACCEPTED
        else:
            command, status = EventCommand.VALIDATION_REJECT, HsseValidationStatus.REJECTED
        return self._simple_command(
            ctx, event_id, command, notes, {"hsse_validation_status": status.value},
        )

    def decide_escalation_review(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: EscalationReviewDecision | str,
        notes: str | None = None,
        investigator_id: str | None = None,
    ) -> EscalationReviewResult:
        """
        Resolve a pending escalation review.

        * ``reject`` returns the observation to the department rep; notes
          are required.
        * ``accept_observation`` sends it to HSSE validation.
        * ``upgrade_incident`` creates a new incident under investigation by
          ``investigator_id`` and terminates the observation as ``upgraded``,
          in the same transaction.

        Raises:
            TextTooShortError: reject with notes below the minimum.
            MissingInvestigatorError: upgrade without an investigator.
        """
        decision = parse_decision(
            EscalationReviewDecision, decision, "decide_escalation_review",
        )
        command = {
            EscalationReviewDecision.REJECT: EventCommand.ESCALATION_REJECT,
            EscalationReviewDecision.ACCEPT_OBSERVATION: EventCommand.ESCALATION_ACCEPT,
            EscalationReviewDecision.UPGRADE_INCIDENT: EventCommand.ESCALATION_UPGRADE,
        }[decision]

        def work(uow: _UnitOfWork) -> EscalationReviewResult:
            event = uow.loader.event(ctx.tenant_id, event_id)
            transition = uow.lifecycle.prepare_event(event, command, ctx.actor_id)

            text = notes
            incident: SafetyEventModel | None = None
            changes: dict[str, Any] = {}
            details: dict[str, Any] = {"decision": decision.value}
            if decision is EscalationReviewDecision.REJECT:
                text = require_min_length(
                    "notes", notes, self._config.text_rules.escalation_reject_notes,
                )
            elif decision is EscalationReviewDecision.UPGRADE_INCIDENT:
                if not investigator_id:
                    raise MissingInvestigatorError(str(event.id), "upgrade_incident")
                incident = uow.events.create_upgraded_incident(event, investigator_id)
                changes["upgraded_to_event_id"] = incident.id
                details["incident_reference_code"] = incident.reference_code
                details["investigator_id"] = investigator_id

            uow.lifecycle.apply_event(
                event, transition, ctx.actor_id,
                notes=text, changes=changes, details=details,
            )

            record = EscalationDecisionModel(
                tenant_id=event.tenant_id,
                event_id=event.id,
                decision=decision.value,
                decided_by=ctx.actor_id,
                notes=text,
                resulting_event_id=incident.id if incident is not None else None,
                decided_at=self._clock.now(),
            )
            uow.session.add(record)
            uow.session.flush()

            return EscalationReviewResult(
                event=event.to_dto(),
                decision=record.to_dto(),
                incident=incident.to_dto() if incident is not None else None,
            )

        return self._command(ctx, "decide_escalation_review", work, event_id)

    def decide_rejection_review(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: RejectionReviewDecision | str,
        notes: str | None = None,
    ) -> SafetyEvent:
        """Approve the rejection (closes the observation) or send it back."""
        decision = parse_decision(RejectionReviewDecision, decision, "decide_rejection_review")
        if decision is RejectionReviewDecision.APPROVE_REJECTION:
            return self._simple_command(
                ctx, event_id, EventCommand.REJECTION_APPROVE, notes,
                self._closed_changes(ClosureOutcome.REJECTED),
            )
        return self._simple_command(ctx, event_id, EventCommand.REJECTION_OVERTURN, notes)

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    @staticmethod
    def _checklist(checklist: ClosureChecklist | Mapping[str, bool]) -> ClosureChecklist:
        if isinstance(checklist, ClosureChecklist):
            return checklist
        try:
            return ClosureChecklist.from_mapping(checklist)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None

    def request_closure(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        checklist: ClosureChecklist | Mapping[str, bool],
        notes: str | None = None,
    ) -> SafetyEvent:
        """
        Close an investigated event, or send it for manager approval.

        Severity 5 moves to ``pending_final_closure``; lower severities
        close directly with outcome ``resolved``.  ``notes`` are kept on the
        event for the approving manager alongside who asked.

        Raises:
            SeverityChangePendingError: a severity change awaits approval.
            ChecklistIncompleteError: a required checklist item is unticked.
            HsseValidationRequiredError: severity >= 3 without accepted
                HSSE validation.
            ActionCoverageError: a root cause or contributing factor has no
                verified or closed corrective action.
        """
        checklist = self._checklist(checklist)

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            transition = uow.lifecycle.prepare_event(
                event, EventCommand.REQUEST_CLOSURE, ctx.actor_id,
            )
            uow.closure_gate.enforce(event, checklist)
            text = (notes or "").strip() or None
            changes: dict[str, Any] = {
                "closure_requested_by": ctx.actor_id,
                "closure_request_notes": text,
            }
            if transition.to_state == EventStatus.CLOSED:
                changes.update(self._closed_changes(ClosureOutcome.RESOLVED))
            uow.lifecycle.apply_event(
                event, transition, ctx.actor_id,
                notes=text, changes=changes, details={"checklist": asdict(checklist)},
            )
            return event.to_dto()

        return self._command(ctx, "request_closure", work, event_id)

    def decide_final_closure(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> SafetyEvent:
        """Manager approval of a severity-5 closure; a rejection needs notes."""
        decision = parse_decision(ApprovalDecision, decision, "decide_final_closure")
        if decision is ApprovalDecision.APPROVE:
            return self._simple_command(
                ctx, event_id, EventCommand.FINAL_CLOSURE_APPROVE, notes,
                self._closed_changes(ClosureOutcome.RESOLVED),
            )

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            transition = uow.lifecycle.prepare_event(
                event, EventCommand.FINAL_CLOSURE_REJECT, ctx.actor_id,
            )
            text = require_min_length(
                "notes", notes, self._config.text_rules.final_closure_reject_notes,
            )
            uow.lifecycle.apply_event(
                event, transition, ctx.actor_id,
                notes=text,
                changes={
                    "closure_rejection_notes": text,
                    "closure_requested_by": None,
                    "closure_request_notes": None,
                },
            )
            return event.to_dto()

        return self._command(ctx, "decide_final_closure", work, event_id)

    def can_request_closure(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        checklist: ClosureChecklist | Mapping[str, bool],
    ) -> ClosureGateResult:
        """Closure Gate verdict for the event.  Never mutates."""
        checklist = self._checklist(checklist)
        return self._query(
            ctx, lambda uow: uow.closure_gate.evaluate(ctx.tenant_id, event_id, checklist),
        )

    # ------------------------------------------------------------------
    # Severity changes
    # ------------------------------------------------------------------

    def propose_severity_change(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        new_severity: int,
        justification: str,
    ) -> SafetyEvent:
        """Investigator re-rates an event; the HSSE manager confirms or reverts.

        The new severity and its closure policy apply at once, and closure
        is blocked until the change is decided.
        """

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            return uow.severity.propose_severity_change(
                event, ctx.actor_id, new_severity, justification,
            ).to_dto()

        return self._command(ctx, "propose_severity_change", work, event_id)

    def decide_severity_change(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> SafetyEvent:
        """Approve the pending severity, or reject it and restore the original."""
        decision = parse_decision(ApprovalDecision, decision, "decide_severity_change")

        def work(uow: _UnitOfWork) -> SafetyEvent:
            event = uow.loader.event(ctx.tenant_id, event_id)
            return uow.severity.decide_severity_change(
                event, ctx.actor_id, decision, notes,
            ).to_dto()

        return self._command(ctx, "decide_severity_change", work, event_id)

    # ------------------------------------------------------------------
    # Contractor violations
    # ------------------------------------------------------------------

    def submit_contractor_violation(
        self, ctx: WorkflowContext, event_id: UUID, notes: str | None = None,
    ) -> SafetyEvent:
        return self._simple_command(
            ctx, event_id, EventCommand.SUBMIT_VIOLATION, notes,
            {"violation_status": ViolationStatus.PENDING.value},
        )

    def decide_contract_controller_approval(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        decision: ContractControllerDecision | str,
        notes: str | None = None,
    ) -> SafetyEvent:
        """Approve (penalty becomes enforceable) or return a violation for rework."""
        decision = parse_decision(
            ContractControllerDecision, decision, "decide_contract_controller_approval",
        )
        if decision is ContractControllerDecision.APPROVED:
            return self._simple_command(
                ctx, event_id, EventCommand.CONTRACT_APPROVE, notes,
                {
                    "penalty_enforceable": True,
                    "violation_status": ViolationStatus.ENFORCEABLE.value,
                },
            )
        return self._simple_command(
            ctx, event_id, EventCommand.CONTRACT_REJECT, notes,
            {"violation_status": ViolationStatus.RETURNED_FOR_REWORK.value},
        )

    # ------------------------------------------------------------------
    # Investigation: root causes and corrective actions
    # ------------------------------------------------------------------

    def record_root_cause(
        self, ctx: WorkflowContext, event_id: UUID, kind: str, description: str,
    ) -> RootCause:
        def work(uow: _UnitOfWork) -> RootCause:
            event = uow.loader.event(ctx.tenant_id, event_id)
            return uow.events.record_root_cause(
                event, ctx.actor_id, kind, description,
            ).to_dto()

        return self._command(ctx, "record_root_cause", work, event_id)

    def assign_corrective_action(
        self,
        ctx: WorkflowContext,
        event_id: UUID,
        owner_id: str,
        title: str,
        due_date: date,
        root_cause_id: UUID | None = None,
    ) -> CorrectiveAction:
        def work(uow: _UnitOfWork) -> CorrectiveAction:
            event = uow.loader.event(ctx.tenant_id, event_id)
            return uow.events.assign_corrective_action(
                event, ctx.actor_id, owner_id, title, due_date, root_cause_id,
            ).to_dto()

        return self._command(ctx, "assign_corrective_action", work, event_id)

    def transition_action(
        self,
        ctx: WorkflowContext,
        action_id: UUID,
        command: ActionCommand | str,
        notes: str | None = None,
    ) -> CorrectiveAction:
        """Move a corrective action along its lifecycle.

        ``return_for_correction`` increments the action's return count.
        """
        command = parse_decision(ActionCommand, command, "transition_action")

        def work(uow: _UnitOfWork) -> CorrectiveAction:
            action = uow.loader.action(ctx.tenant_id, action_id)
            event = uow.loader.event(ctx.tenant_id, action.event_id)
            transition = uow.lifecycle.prepare_action(action, event, command, ctx.actor_id)
            changes: dict[str, Any] = {}
            if command is ActionCommand.RETURN_FOR_CORRECTION:
                changes["return_count"] = action.return_count + 1
            uow.lifecycle.apply_action(
                action, transition, ctx.actor_id, notes=notes, changes=changes,
            )
            return action.to_dto()

        return self._command(ctx, f"action_{command.value}", work)

    # ------------------------------------------------------------------
    # Due-date extensions
    # ------------------------------------------------------------------

    def request_extension(
        self,
        ctx: WorkflowContext,
        action_id: UUID,
        requested_due_date: date,
        reason: str,
    ) -> ExtensionRequest:
        def work(uow: _UnitOfWork) -> ExtensionRequest:
            return uow.extensions.request_extension(
                ctx.tenant_id, ctx.actor_id, action_id, requested_due_date, reason,
            ).to_dto()

        return self._command(ctx, "request_extension", work)

    def decide_extension(
        self,
        ctx: WorkflowContext,
        request_id: UUID,
        decision: ApprovalDecision | str,
        notes: str | None = None,
    ) -> ExtensionRequest:
        """Record one approver's decision on a pending extension request."""
        decision = parse_decision(ApprovalDecision, decision, "decide_extension")

        def work(uow: _UnitOfWork) -> ExtensionRequest:
            request, _action = uow.extensions.decide_extension(
                ctx.tenant_id, ctx.actor_id, request_id, decision, notes,
            )
            return request.to_dto()

        return self._command(ctx, "decide_extension", work)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_event(self, ctx: WorkflowContext, event_id: UUID) -> SafetyEvent:
        return self._query(ctx, lambda uow: uow.selector.get_event(ctx.tenant_id, event_id))

    def list_events(
        self,
        ctx: WorkflowContext,
        status: EventStatus | str | None = None,
        event_type: str | None = None,
    ) -> list[SafetyEvent]:
        status_value = (
            parse_decision(EventStatus, status, "list_events").value
            if status is not None else None
        )
        return self._query(
            ctx,
            lambda uow: uow.selector.list_events(ctx.tenant_id, status_value, event_type),
        )

    def list_root_causes(self, ctx: WorkflowContext, event_id: UUID) -> list[RootCause]:
        return self._query(ctx, lambda uow: uow.selector.root_causes(ctx.tenant_id, event_id))

    def list_actions(self, ctx: WorkflowContext, event_id: UUID) -> list[CorrectiveAction]:
        return self._query(
            ctx, lambda uow: uow.selector.actions_for_event(ctx.tenant_id, event_id),
        )

    def list_extension_requests(
        self, ctx: WorkflowContext, action_id: UUID,
    ) -> list[ExtensionRequest]:
        return self._query(
            ctx,
            lambda uow: uow.selector.extension_requests_for_action(ctx.tenant_id, action_id),
        )

    def escalation_decisions(
        self, ctx: WorkflowContext, event_id: UUID,
    ) -> list[EscalationDecision]:
        return self._query(
            ctx, lambda uow: uow.selector.escalation_decisions(ctx.tenant_id, event_id),
        )

    def available_commands(
        self, ctx: WorkflowContext, event_id: UUID,
    ) -> tuple[EventCommand, ...]:
        """Commands with an edge out of the event's current state.

        Guards and authorization are not evaluated.
        """
        event = self.get_event(ctx, event_id)
        return available_event_commands(event.status)

    def find_overdue_actions(
        self, ctx: WorkflowContext, as_of: date | None = None,
    ) -> list[CorrectiveAction]:
        """Open actions past their due date, for SLA escalation feeds."""
        as_of = as_of or self._clock.today()
        return self._query(ctx, lambda uow: uow.selector.overdue_actions(ctx.tenant_id, as_of))

    def history(self, ctx: WorkflowContext, event_id: UUID) -> tuple[AuditLogEntry, ...]:
        """The event's audit trail in append order.

        An incident created by an upgrade has no entry of its own for its
        creation; the upgrade entry on the source observation names it by
        reference code and opens the incident's trail.
        """

        def work(uow: _UnitOfWork) -> tuple[AuditLogEntry, ...]:
            event = uow.loader.event(ctx.tenant_id, event_id)
            entries = uow.audit.history(ctx.tenant_id, event_id)
            if event.source_event_id is None:
                return entries
            origin = tuple(
                entry
                for entry in uow.audit.history(ctx.tenant_id, event.source_event_id)
                if entry.payload.get("incident_reference_code") == event.reference_code
            )
            return tuple(sorted(origin + entries, key=lambda entry: entry.seq))

        return self._query(ctx, work)

    def validate_audit_chain(self, ctx: WorkflowContext) -> bool:
        return self._query(ctx, lambda uow: uow.audit.validate_chain(ctx.tenant_id))
