"""
Module: hsse_kernel.models.audit_log
Responsibility: ORM persistence for the append-only, hash-chained audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - Hash chain per tenant: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditLogger.validate_chain.
    - seq is strictly increasing per tenant, allocated from a locked
      counter row, which also serializes appends within a tenant.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a hash mismatch.

Audit relevance:
    This table IS the audit trail.  Every successful orchestrator operation
    writes exactly one row, in the same transaction as the state change it
    documents.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import Base
from hsse_kernel.domain.dtos import AuditLogEntry


class AuditEntityType(str, Enum):
    SAFETY_EVENT = "safety_event"
    CORRECTIVE_ACTION = "corrective_action"
    EXTENSION_REQUEST = "extension_request"
    ROOT_CAUSE = "root_cause"


class AuditLogEntryModel(Base):
    """
    Audit log entry with hash chain for tamper evidence.

    Guarantees:
        - (tenant_id, seq) is unique and seq increases per tenant.
        - prev_hash is None only for a tenant's first entry.
    """

    __tablename__ = "audit_log_entries"

    __table_args__ = (
        UniqueConstraint("tenant_id", "seq", name="uq_audit_log_tenant_seq"),
        Index("ix_audit_log_event", "tenant_id", "event_id", "seq"),
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_action", "action"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    seq: Mapped[int] = mapped_column(nullable=False)

    # Aggregate root the entry belongs to; history() reads by this column
    event_id: Mapped[UUID] = mapped_column(nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)

    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(80), nullable=False)
    old_value: Mapped[str | None] = mapped_column(String(80), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(80), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry #{self.seq} {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> AuditLogEntry:
        return AuditLogEntry(
            id=self.id,
            tenant_id=self.tenant_id,
            seq=self.seq,
            event_id=self.event_id,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            actor_id=self.actor_id,
            action=self.action,
            old_value=self.old_value,
            new_value=self.new_value,
            notes=self.notes,
            timestamp=self.occurred_at,
            payload=dict(self.payload or {}),
            hash=self.hash,
            prev_hash=self.prev_hash,
        )
