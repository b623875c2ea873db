"""
Module: hsse_kernel.selectors.event_selector
Responsibility: Read side for events, corrective actions, extension requests
    and escalation decisions.  Returns frozen DTOs only.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from hsse_kernel.domain.dtos import (
    CorrectiveAction,
    EscalationDecision,
    ExtensionRequest,
    RootCause,
    SafetyEvent,
)
from hsse_kernel.domain.lifecycle import TERMINAL_ACTION_STATUSES, ActionStatus
from hsse_kernel.exceptions import EventNotFoundError
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.escalation import EscalationDecisionModel
from hsse_kernel.models.event import RootCauseModel, SafetyEventModel
from hsse_kernel.models.extension import ExtensionRequestModel
from hsse_kernel.selectors.base import BaseSelector, scoped_select


class EventSelector(BaseSelector[SafetyEventModel]):
    """Tenant-scoped queries over the safety event aggregate."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_event(self, tenant_id: str, event_id: UUID) -> SafetyEvent:
        model = self.session.execute(
            scoped_select(SafetyEventModel, tenant_id)
            .where(SafetyEventModel.id == event_id)
        ).scalar_one_or_none()
        if model is None:
            raise EventNotFoundError(str(event_id))
        return model.to_dto()

    def list_events(
        self,
        tenant_id: str,
        status: str | None = None,
        event_type: str | None = None,
    ) -> list[SafetyEvent]:
        stmt = scoped_select(SafetyEventModel, tenant_id)
        if status is not None:
            stmt = stmt.where(SafetyEventModel.status == status)
        if event_type is not None:
            stmt = stmt.where(SafetyEventModel.event_type == event_type)
        stmt = stmt.order_by(SafetyEventModel.created_at, SafetyEventModel.reference_code)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def root_causes(self, tenant_id: str, event_id: UUID) -> list[RootCause]:
        stmt = (
            scoped_select(RootCauseModel, tenant_id)
            .where(RootCauseModel.event_id == event_id)
            .order_by(RootCauseModel.created_at)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def actions_for_event(self, tenant_id: str, event_id: UUID) -> list[CorrectiveAction]:
        stmt = (
            scoped_select(CorrectiveActionModel, tenant_id)
            .where(CorrectiveActionModel.event_id == event_id)
            .order_by(CorrectiveActionModel.created_at)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def extension_requests_for_action(
        self, tenant_id: str, action_id: UUID,
    ) -> list[ExtensionRequest]:
        stmt = (
            scoped_select(ExtensionRequestModel, tenant_id)
            .where(ExtensionRequestModel.action_id == action_id)
            .order_by(ExtensionRequestModel.created_at)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def escalation_decisions(self, tenant_id: str, event_id: UUID) -> list[EscalationDecision]:
        stmt = (
            scoped_select(EscalationDecisionModel, tenant_id)
            .where(EscalationDecisionModel.event_id == event_id)
            .order_by(EscalationDecisionModel.decided_at)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def overdue_actions(self, tenant_id: str, as_of: date) -> list[CorrectiveAction]:
        """Open actions whose due date is before ``as_of`` (SLA escalation feed)."""
        open_statuses = [
            s.value for s in ActionStatus
            if s not in TERMINAL_ACTION_STATUSES and s != ActionStatus.VERIFIED
        ]
        stmt = (
            scoped_select(CorrectiveActionModel, tenant_id)
            .where(
                CorrectiveActionModel.due_date < as_of,
                CorrectiveActionModel.status.in_(open_statuses),
            )
            .order_by(CorrectiveActionModel.due_date)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
