"""
Module: hsse_kernel.models.escalation
Responsibility: ORM persistence for HSSE escalation review decisions.
Architecture position: Kernel > Models.

Invariants enforced:
    - Append-only: UPDATE and DELETE are refused by ORM listeners.
    - resulting_event_id is set only for upgrade_incident decisions.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import Base
from hsse_kernel.domain.dtos import EscalationDecision


class EscalationDecisionModel(Base):
    """Record of an escalation review outcome.  Append-only."""

    __tablename__ = "escalation_decisions"

    __table_args__ = (
        CheckConstraint(
            "decision IN ('reject', 'accept_observation', 'upgrade_incident')",
            name="ck_escalation_decisions_decision",
        ),
        CheckConstraint(
            "(decision = 'upgrade_incident') = (resulting_event_id IS NOT NULL)",
            name="ck_escalation_decisions_resulting_event",
        ),
        Index("ix_escalation_decisions_event", "tenant_id", "event_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_id: Mapped[UUID] = mapped_column(ForeignKey("safety_events.id"), nullable=False)
    decision: Mapped[str] = mapped_column(String(30), nullable=False)
    decided_by: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resulting_event_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("safety_events.id"), nullable=True,
    )
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> EscalationDecision:
        return EscalationDecision(
            id=self.id,
            tenant_id=self.tenant_id,
            event_id=self.event_id,
            decision=self.decision,
            decided_by=self.decided_by,
            notes=self.notes,
            resulting_event_id=self.resulting_event_id,
            decided_at=self.decided_at,
        )
