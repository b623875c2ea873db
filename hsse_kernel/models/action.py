"""
Module: hsse_kernel.models.action
Responsibility: ORM persistence for corrective actions.
Architecture position: Kernel > Models.

Invariants enforced:
    - status is one of the action lifecycle states (DB check constraint).
    - return_count only grows; it is incremented in the same compare-and-swap
      that moves the action to returned_for_correction.
    - open_extension_request_id points at the single pending extension
      request, if any.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import TenantScopedBase
from hsse_kernel.domain.dtos import CorrectiveAction
from hsse_kernel.domain.lifecycle import ActionStatus


class CorrectiveActionModel(TenantScopedBase):
    """Remedial task tied to an event and, usually, a root cause."""

    __tablename__ = "corrective_actions"

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s.value}'" for s in ActionStatus)),
            name="ck_corrective_actions_valid_status",
        ),
        CheckConstraint("return_count >= 0", name="ck_corrective_actions_return_count"),
        Index("ix_corrective_actions_event", "tenant_id", "event_id"),
        Index("ix_corrective_actions_root_cause", "root_cause_id"),
        Index("ix_corrective_actions_due", "tenant_id", "status", "due_date"),
    )

    event_id: Mapped[UUID] = mapped_column(ForeignKey("safety_events.id"), nullable=False)
    root_cause_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("root_causes.id"), nullable=True,
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    return_count: Mapped[int] = mapped_column(nullable=False, default=0)
    open_extension_request_id: Mapped[UUID | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<CorrectiveAction {self.id} status={self.status}>"

    def to_dto(self) -> CorrectiveAction:
        return CorrectiveAction(
            id=self.id,
            tenant_id=self.tenant_id,
            event_id=self.event_id,
            root_cause_id=self.root_cause_id,
            owner_id=self.owner_id,
            title=self.title,
            status=self.status,
            due_date=self.due_date,
            return_count=self.return_count,
            open_extension_request_id=self.open_extension_request_id,
        )
