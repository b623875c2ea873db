"""
Write-side aggregate loading.

Services that mutate an aggregate need the live ORM instance, not a DTO.
These loaders apply the same tenant scoping and soft-delete filtering as
the selectors and raise the typed NotFound errors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from hsse_kernel.exceptions import (
    ActionNotFoundError,
    EventNotFoundError,
    ExtensionRequestNotFoundError,
    RootCauseNotFoundError,
)
from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.event import RootCauseModel, SafetyEventModel
from hsse_kernel.models.extension import ExtensionRequestModel
from hsse_kernel.selectors.base import scoped_select


class AggregateLoader:
    def __init__(self, session: Session):
        self._session = session

    def _one(self, model, tenant_id: str, entity_id: UUID):
        return self._session.execute(
            scoped_select(model, tenant_id).where(model.id == entity_id)
        ).scalar_one_or_none()

    def event(self, tenant_id: str, event_id: UUID) -> SafetyEventModel:
        model = self._one(SafetyEventModel, tenant_id, event_id)
        if model is None:
            raise EventNotFoundError(str(event_id))
        return model

    def action(self, tenant_id: str, action_id: UUID) -> CorrectiveActionModel:
        model = self._one(CorrectiveActionModel, tenant_id, action_id)
        if model is None:
            raise ActionNotFoundError(str(action_id))
        return model

    def extension_request(self, tenant_id: str, request_id: UUID) -> ExtensionRequestModel:
        model = self._one(ExtensionRequestModel, tenant_id, request_id)
        if model is None:
            raise ExtensionRequestNotFoundError(str(request_id))
        return model

    def root_cause(self, tenant_id: str, event_id: UUID, root_cause_id: UUID) -> RootCauseModel:
        model = self._one(RootCauseModel, tenant_id, root_cause_id)
        if model is None or model.event_id != event_id:
            raise RootCauseNotFoundError(str(root_cause_id))
        return model

    def root_causes(self, tenant_id: str, event_id: UUID) -> list[RootCauseModel]:
        return list(self._session.execute(
            scoped_select(RootCauseModel, tenant_id)
            .where(RootCauseModel.event_id == event_id)
            .order_by(RootCauseModel.created_at)
        ).scalars())

    def actions_for_event(self, tenant_id: str, event_id: UUID) -> list[CorrectiveActionModel]:
        return list(self._session.execute(
            scoped_select(CorrectiveActionModel, tenant_id)
            .where(CorrectiveActionModel.event_id == event_id)
        ).scalars())

    def pending_extension_for_action(
        self, tenant_id: str, action_id: UUID,
    ) -> ExtensionRequestModel | None:
        return self._session.execute(
            scoped_select(ExtensionRequestModel, tenant_id)
            .where(
                ExtensionRequestModel.action_id == action_id,
                ExtensionRequestModel.status == "pending",
            )
        ).scalar_one_or_none()
