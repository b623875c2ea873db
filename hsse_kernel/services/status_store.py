"""
StatusStore -- optimistic compare-and-swap on aggregate status.

Responsibility:
    The only writer of ``status`` columns.  A status change is one
    ``UPDATE ... WHERE id = :id AND tenant_id = :tenant AND status =
    :expected AND deleted_at IS NULL``; if the row count is not exactly one,
    another actor got there first and the caller loses with
    ``StaleStatusError``.  On success the audit entry documenting the change
    is appended in the same session, so both commit or neither does.

Architecture position:
    Kernel > Services.  Called by LifecycleService and ExtensionService.

Invariants enforced:
    - A double approval race has a deterministic loser, never a silent
      overwrite.
    - Exactly one audit entry per successful swap.

Failure modes:
    - StaleStatusError (ConflictError) when the precondition no longer holds.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.dtos import AuditLogEntry
from hsse_kernel.exceptions import StaleStatusError
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.audit_log import AuditEntityType
from hsse_kernel.models.event import SafetyEventModel
from hsse_kernel.models.extension import ExtensionRequestModel
from hsse_kernel.services.audit_logger import AuditEntryDraft, AuditLogger
from hsse_kernel.services.base import BaseService

logger = get_logger("services.status_store")

_ENTITY_TYPES: dict[type, AuditEntityType] = {
    SafetyEventModel: AuditEntityType.SAFETY_EVENT,
    CorrectiveActionModel: AuditEntityType.CORRECTIVE_ACTION,
    ExtensionRequestModel: AuditEntityType.EXTENSION_REQUEST,
}


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


def owning_event_id(instance):
    """The aggregate root id an entry is filed under."""
    if isinstance(instance, SafetyEventModel):
        return instance.id
    return instance.event_id


class StatusStore(BaseService):

    def __init__(
        self,
        session: Session,
        audit_logger: AuditLogger,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit_logger

    def compare_and_swap_status(
        self,
        instance: SafetyEventModel | CorrectiveActionModel | ExtensionRequestModel,
        expected_status: str,
        new_status: str,
        *,
        actor_id: str,
        action: str,
        notes: str | None = None,
        changes: dict[str, Any] | None = None,
        expected: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """
        Swap ``expected_status`` -> ``new_status`` and append the audit entry.

        ``changes`` are extra columns written by the same UPDATE; ``expected``
        adds further equality preconditions (e.g. an approval level).

        Raises:
            StaleStatusError: the row is no longer in ``expected_status``.
        """
        model = type(instance)
        entity_type = _ENTITY_TYPES[model]
        expected_status = _value(expected_status)
        new_status = _value(new_status)

        # Pending ORM changes must not ride along after the swap
        self.session.flush()

        values = {
            "status": new_status,
            "updated_at": self.clock.now(),
            **{k: _value(v) for k, v in (changes or {}).items()},
        }
        stmt = (
            update(model)
            .where(
                model.id == instance.id,
                model.tenant_id == instance.tenant_id,
                model.status == expected_status,
                model.deleted_at.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        for column, value in (expected or {}).items():
            stmt = stmt.where(getattr(model, column) == value)

        result = self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "status_swap_lost",
                extra={
                    "entity_type": entity_type.value,
                    "entity_id": str(instance.id),
                    "expected_status": expected_status,
                    "new_status": new_status,
                },
            )
            raise StaleStatusError(entity_type.value, str(instance.id), expected_status)

        self.session.refresh(instance)

        return self._audit.append(AuditEntryDraft(
            tenant_id=instance.tenant_id,
            event_id=owning_event_id(instance),
            entity_type=entity_type.value,
            entity_id=instance.id,
            actor_id=actor_id,
            action=_value(action),
            old_value=expected_status,
            new_value=new_status,
            notes=notes,
            details={
                **{k: v for k, v in values.items() if k not in ("status", "updated_at")},
                **(details or {}),
            },
        ))
