"""
Module: hsse_kernel.models.extension
Responsibility: ORM persistence for due-date extension requests.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one pending request per action: checked by the extension
      service and backed by a partial unique index (PostgreSQL and SQLite).
    - approval_chain is snapshotted at creation so a config change never
      alters a request already in flight.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import TenantScopedBase
from hsse_kernel.domain.dtos import ExtensionRequest


class ExtensionRequestModel(TenantScopedBase):
    """Request to move a corrective action's due date."""

    __tablename__ = "extension_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_extension_requests_valid_status",
        ),
        Index(
            "ix_extension_requests_one_pending",
            "action_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_extension_requests_tenant_status", "tenant_id", "status"),
    )

    action_id: Mapped[UUID] = mapped_column(ForeignKey("corrective_actions.id"), nullable=False)
    event_id: Mapped[UUID] = mapped_column(ForeignKey("safety_events.id"), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    current_due_date: Mapped[date] = mapped_column(nullable=False)
    requested_due_date: Mapped[date] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    approval_chain: Mapped[list] = mapped_column(JSON, nullable=False)
    current_level: Mapped[int] = mapped_column(nullable=False, default=0)
    decided_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ExtensionRequest {self.id} action={self.action_id} status={self.status}>"

    def to_dto(self) -> ExtensionRequest:
        return ExtensionRequest(
            id=self.id,
            tenant_id=self.tenant_id,
            action_id=self.action_id,
            event_id=self.event_id,
            requester_id=self.requester_id,
            current_due_date=self.current_due_date,
            requested_due_date=self.requested_due_date,
            reason=self.reason,
            status=self.status,
            approval_chain=tuple(self.approval_chain),
            current_level=self.current_level,
            decided_by=self.decided_by,
            decision_notes=self.decision_notes,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
        )
