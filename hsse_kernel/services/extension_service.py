"""
ExtensionService -- due-date extension requests for corrective actions.

Responsibility:
    ``request_extension`` opens a pending request and links it to the
    action; ``decide_extension`` walks the configured approval chain and,
    on the final approval, moves the action's due date.

Architecture position:
    Kernel > Services.  The chain rules live in domain/extension.py.

Invariants enforced:
    - At most one pending request per action: service check first, then the
      partial unique index as the backstop under concurrency.
    - The due date changes exactly once: a decision on a terminal request
      raises ExtensionAlreadyDecidedError, and the request's status swap is
      a compare-and-swap on (status, current_level).

Failure modes:
    - TextTooShortError, DueDateNotInFutureError (ValidationError).
    - InvalidTransitionError when the owning event is closed or upgraded.
    - DuplicateOpenExtensionError, ExtensionAlreadyDecidedError,
      StaleStatusError (ConflictError).
    - PermissionDeniedError.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.decisions import (
    DEFAULT_MIN_TEXT_LENGTH,
    ApprovalDecision,
    require_future_date,
    require_min_length,
)
from hsse_kernel.domain.extension import (
    DEFAULT_APPROVAL_CHAIN,
    TERMINAL_EXTENSION_STATUSES,
    ExtensionStatus,
    plan_extension_decision,
)
from hsse_kernel.domain.lifecycle import ActionStatus
from hsse_kernel.domain.ports import Capability
from hsse_kernel.exceptions import DuplicateOpenExtensionError, InvalidTransitionError
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.audit_log import AuditEntityType
from hsse_kernel.models.extension import ExtensionRequestModel
from hsse_kernel.services.audit_logger import AuditEntryDraft, AuditLogger
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.lifecycle_service import LifecycleService
from hsse_kernel.services.loaders import AggregateLoader
from hsse_kernel.services.status_store import StatusStore

logger = get_logger("services.extension")

_NOT_EXTENDABLE = frozenset({ActionStatus.VERIFIED.value, ActionStatus.CLOSED.value})


class ExtensionService(BaseService):

    def __init__(
        self,
        session: Session,
        lifecycle: LifecycleService,
        status_store: StatusStore,
        audit_logger: AuditLogger,
        clock: Clock | None = None,
        approval_chain: tuple[Capability, ...] = DEFAULT_APPROVAL_CHAIN,
        min_reason_length: int = DEFAULT_MIN_TEXT_LENGTH,
    ):
        super().__init__(session, clock)
        self._lifecycle = lifecycle
        self._store = status_store
        self._audit = audit_logger
        self._loader = AggregateLoader(session)
        self._chain = tuple(Capability(c) for c in approval_chain)
        self._min_reason_length = min_reason_length

    def request_extension(
        self,
        tenant_id: str,
        actor_id: str,
        action_id: UUID,
        requested_due_date: date,
        reason: str,
    ) -> ExtensionRequestModel:
        """
        Open a pending extension request for an action.

        Raises:
            TextTooShortError: reason shorter than the minimum.
            DueDateNotInFutureError: requested date is today or earlier.
            DuplicateOpenExtensionError: a pending request already exists.
        """
        action = self._loader.action(tenant_id, action_id)
        event = self._loader.event(tenant_id, action.event_id)
        self._lifecycle.require_open_event(event, "request_extension")
        self._lifecycle.authorize(actor_id, Capability.REQUEST_EXTENSION, event)

        reason = require_min_length("reason", reason, self._min_reason_length)
        require_future_date(requested_due_date, self.clock.today())

        if action.status in _NOT_EXTENDABLE:
            raise InvalidTransitionError("corrective_action", action.status, "request_extension")

        existing = self._loader.pending_extension_for_action(tenant_id, action.id)
        if existing is not None:
            raise DuplicateOpenExtensionError(str(action.id), str(existing.id))

        now = self.clock.now()
        request = ExtensionRequestModel(
            tenant_id=tenant_id,
            action_id=action.id,
            event_id=action.event_id,
            requester_id=actor_id,
            current_due_date=action.due_date,
            requested_due_date=requested_due_date,
            reason=reason,
            status=ExtensionStatus.PENDING.value,
            approval_chain=[c.value for c in self._chain],
            current_level=0,
            created_at=now,
            updated_at=now,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(request)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "extension_request_duplicate_race",
                extra={"action_id": str(action.id)},
            )
            raise DuplicateOpenExtensionError(str(action.id), "concurrent") from None

        action.open_extension_request_id = request.id
        action.updated_at = now
        self.session.flush()

        self._audit.append(AuditEntryDraft(
            tenant_id=tenant_id,
            event_id=action.event_id,
            entity_type=AuditEntityType.EXTENSION_REQUEST.value,
            entity_id=request.id,
            actor_id=actor_id,
            action="extension_requested",
            new_value=ExtensionStatus.PENDING.value,
            notes=reason,
            details={
                "action_id": action.id,
                "current_due_date": action.due_date,
                "requested_due_date": requested_due_date,
            },
        ))
        logger.info(
            "extension_requested",
            extra={"request_id": str(request.id), "action_id": str(action.id)},
        )
        return request

    def decide_extension(
        self,
        tenant_id: str,
        actor_id: str,
        request_id: UUID,
        decision: ApprovalDecision,
        notes: str | None = None,
    ) -> tuple[ExtensionRequestModel, CorrectiveActionModel]:
        """
        Record one approver's decision.

        Raises:
            ExtensionAlreadyDecidedError: the request is already terminal.
            StaleStatusError: another approver decided concurrently.
        """
        request = self._loader.extension_request(tenant_id, request_id)
        chain = tuple(Capability(c) for c in request.approval_chain)
        step = plan_extension_decision(
            str(request.id), request.status, request.current_level, decision, chain,
        )

        action = self._loader.action(tenant_id, request.action_id)
        event = self._loader.event(tenant_id, request.event_id)
        self._lifecycle.require_open_event(event, "decide_extension")
        self._lifecycle.authorize(actor_id, step.capability, event)

        terminal = step.new_status in TERMINAL_EXTENSION_STATUSES
        now = self.clock.now()
        changes = {"current_level": step.to_level, "decided_by": actor_id}
        if notes is not None:
            changes["decision_notes"] = notes
        if terminal:
            changes["resolved_at"] = now

        self._store.compare_and_swap_status(
            request,
            ExtensionStatus.PENDING.value,
            step.new_status.value,
            actor_id=actor_id,
            action=step.audit_action,
            notes=notes,
            changes=changes,
            expected={"current_level": step.from_level},
            details={
                "action_id": action.id,
                "level": step.from_level,
                "due_date_changed": step.applies_due_date,
                "new_due_date": request.requested_due_date if step.applies_due_date else None,
            },
        )

        if step.applies_due_date:
            action.due_date = request.requested_due_date
        if terminal:
            action.open_extension_request_id = None
        action.updated_at = now
        self.session.flush()

        logger.info(
            "extension_decided",
            extra={
                "request_id": str(request.id),
                "decision": decision.value,
                "new_status": step.new_status.value,
                "level": step.from_level,
            },
        )
        return request, action
