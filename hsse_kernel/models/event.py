"""
Module: hsse_kernel.models.event
Responsibility: ORM persistence for safety events (the aggregate root) and
    the root causes / contributing factors recorded against them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value types only.

Invariants enforced:
    - status is one of the lifecycle states (DB check constraint); the
      lifecycle service is the only writer and goes through the status
      store's compare-and-swap.
    - reference_code is unique per tenant.
    - Events are never physically deleted (ORM listener); deleted_at marks
      a soft delete and every selector filters on it.
    - severity is 1..5 (DB check constraint).
    - While severity_pending_approval is set, original_severity holds the
      severity a rejection restores.

Failure modes:
    - IntegrityError on duplicate reference code within a tenant.
    - ImmutabilityViolationError on DELETE.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import TenantScopedBase
from hsse_kernel.domain.dtos import RootCause, SafetyEvent
from hsse_kernel.domain.lifecycle import EventStatus


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class SafetyEventModel(TenantScopedBase):
    """Persistent safety event (observation or incident)."""

    __tablename__ = "safety_events"

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", EventStatus),
            name="ck_safety_events_valid_status",
        ),
        CheckConstraint(
            "severity BETWEEN 1 AND 5",
            name="ck_safety_events_severity_range",
        ),
        CheckConstraint(
            "event_type IN ('observation', 'incident')",
            name="ck_safety_events_event_type",
        ),
        UniqueConstraint(
            "tenant_id", "reference_code",
            name="uq_safety_events_tenant_reference",
        ),
        Index("ix_safety_events_tenant_status", "tenant_id", "status"),
    )

    reference_code: Mapped[str] = mapped_column(String(32), nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    investigator_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    closure_requires_manager_close: Mapped[bool] = mapped_column(nullable=False, default=False)
    hsse_validation_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none",
    )
    closure_outcome: Mapped[str | None] = mapped_column(String(20), nullable=True)
    violation_status: Mapped[str] = mapped_column(String(30), nullable=False, default="none")
    penalty_enforceable: Mapped[bool] = mapped_column(nullable=False, default=False)
    dept_rep_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_severity: Mapped[int | None] = mapped_column(nullable=True)
    severity_change_justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity_pending_approval: Mapped[bool] = mapped_column(nullable=False, default=False)
    severity_approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    severity_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closure_requested_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    closure_request_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closure_rejection_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("safety_events.id"), nullable=True,
    )
    upgraded_to_event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("safety_events.id"), nullable=True,
    )
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<SafetyEvent {self.reference_code} status={self.status}>"

    def to_dto(self) -> SafetyEvent:
        return SafetyEvent(
            id=self.id,
            tenant_id=self.tenant_id,
            reference_code=self.reference_code,
            event_type=self.event_type,
            severity=self.severity,
            status=self.status,
            reporter_id=self.reporter_id,
            title=self.title,
            description=self.description,
            investigator_id=self.investigator_id,
            due_date=self.due_date,
            closure_requires_manager_close=self.closure_requires_manager_close,
            hsse_validation_status=self.hsse_validation_status,
            closure_outcome=self.closure_outcome,
            violation_status=self.violation_status,
            penalty_enforceable=self.penalty_enforceable,
            source_event_id=self.source_event_id,
            upgraded_to_event_id=self.upgraded_to_event_id,
            created_at=self.created_at,
            closed_at=self.closed_at,
            original_severity=self.original_severity,
            severity_pending_approval=self.severity_pending_approval,
            severity_change_justification=self.severity_change_justification,
            severity_approved_by=self.severity_approved_by,
            closure_requested_by=self.closure_requested_by,
            closure_request_notes=self.closure_request_notes,
            closure_rejection_notes=self.closure_rejection_notes,
        )


class RootCauseModel(TenantScopedBase):
    """A root cause or contributing factor identified by the investigation."""

    __tablename__ = "root_causes"

    __table_args__ = (
        CheckConstraint(
            "kind IN ('root_cause', 'contributing_factor')",
            name="ck_root_causes_kind",
        ),
        Index("ix_root_causes_event", "tenant_id", "event_id"),
    )

    event_id: Mapped[UUID] = mapped_column(ForeignKey("safety_events.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> RootCause:
        return RootCause(
            id=self.id,
            tenant_id=self.tenant_id,
            event_id=self.event_id,
            kind=self.kind,
            description=self.description,
            created_at=self.created_at,
        )
