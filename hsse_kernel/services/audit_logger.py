"""
AuditLogger -- append-only, hash-chained audit trail.

Responsibility:
    ``append`` writes one immutable entry; ``history`` returns an event's
    entries in append order; ``validate_chain`` recomputes a tenant's hash
    chain to detect tampering.  No business logic lives here.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the status store (for
    every compare-and-swap) and by the services that create aggregates.
    The caller's transaction is the one that commits the entry, so the
    entry and the change it documents share a boundary.

Invariants enforced:
    - Append-only (ORM listeners refuse UPDATE/DELETE on the model).
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``, where the payload covers every column a
      reader relies on (actor, old/new value, notes, timestamp, details).
    - Per-tenant ordering via a locked sequence counter.

Failure modes:
    - AuditChainBrokenError from ``validate_chain``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock
from hsse_kernel.domain.dtos import AuditLogEntry
from hsse_kernel.exceptions import AuditChainBrokenError
from hsse_kernel.logging_config import get_logger
from hsse_kernel.models.audit_log import AuditLogEntryModel
from hsse_kernel.services.base import BaseService
from hsse_kernel.services.sequence_service import SequenceService, audit_sequence_name
from hsse_kernel.utils.hashing import hash_audit_entry, hash_payload, to_json_safe

logger = get_logger("services.audit_logger")


@dataclass(frozen=True)
class AuditEntryDraft:
    """Everything the caller knows about an entry before it is chained."""

    tenant_id: str
    event_id: UUID
    entity_type: str
    entity_id: UUID
    actor_id: str
    action: str
    old_value: str | None = None
    new_value: str | None = None
    notes: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def _value(v: Any) -> Any:
    return getattr(v, "value", v)


def _chained_payload(entry: AuditLogEntryModel) -> dict[str, Any]:
    return {
        "tenant_id": entry.tenant_id,
        "seq": entry.seq,
        "event_id": str(entry.event_id),
        "actor_id": entry.actor_id,
        "old_value": entry.old_value,
        "new_value": entry.new_value,
        "notes": entry.notes,
        "occurred_at": entry.occurred_at.isoformat(),
        "details": entry.payload,
    }


class AuditLogger(BaseService):
    """
    Creates and validates tamper-evident audit log entries.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT interpret entries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)
        self._appended: list[AuditLogEntry] = []

    @property
    def appended(self) -> tuple[AuditLogEntry, ...]:
        """Entries written through this logger, in append order."""
        return tuple(self._appended)

    def _last_hash(self, tenant_id: str) -> str | None:
        return self.session.execute(
            select(AuditLogEntryModel.hash)
            .where(AuditLogEntryModel.tenant_id == tenant_id)
            .order_by(AuditLogEntryModel.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(self, draft: AuditEntryDraft) -> AuditLogEntry:
        """
        Append one entry to the tenant's chain and flush it.

        Postconditions:
            - seq is one more than the tenant's previous entry.
            - prev_hash is the previous entry's hash (None for the first).
        """
        seq = self._sequences.next_value(audit_sequence_name(draft.tenant_id))
        prev_hash = self._last_hash(draft.tenant_id)

        entry = AuditLogEntryModel(
            tenant_id=draft.tenant_id,
            seq=seq,
            event_id=draft.event_id,
            entity_type=_value(draft.entity_type),
            entity_id=draft.entity_id,
            actor_id=draft.actor_id,
            action=_value(draft.action),
            old_value=_value(draft.old_value),
            new_value=_value(draft.new_value),
            notes=draft.notes,
            occurred_at=self.clock.now().astimezone(UTC),
            payload=to_json_safe(draft.details),
            prev_hash=prev_hash,
        )
        entry.payload_hash = hash_payload(_chained_payload(entry))
        entry.hash = hash_audit_entry(
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            action=entry.action,
            payload_hash=entry.payload_hash,
            prev_hash=prev_hash,
        )

        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_appended",
            extra={
                "entity_type": entry.entity_type,
                "entity_id": str(entry.entity_id),
                "action": entry.action,
                "seq": seq,
            },
        )
        dto = entry.to_dto()
        self._appended.append(dto)
        return dto

    def history(self, tenant_id: str, event_id: UUID) -> tuple[AuditLogEntry, ...]:
        """All entries for an event (and its actions/requests), in append order."""
        rows = self.session.execute(
            select(AuditLogEntryModel)
            .where(
                AuditLogEntryModel.tenant_id == tenant_id,
                AuditLogEntryModel.event_id == event_id,
            )
            .order_by(AuditLogEntryModel.seq)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def validate_chain(self, tenant_id: str) -> bool:
        """
        Recompute every hash in the tenant's chain.

        Raises:
            AuditChainBrokenError: at the first entry whose payload hash,
                chained hash or predecessor link does not match.
        """
        entries = self.session.execute(
            select(AuditLogEntryModel)
            .where(AuditLogEntryModel.tenant_id == tenant_id)
            .order_by(AuditLogEntryModel.seq)
            .execution_options(populate_existing=True)
        ).scalars().all()

        prev: AuditLogEntryModel | None = None
        for entry in entries:
            expected_prev = prev.hash if prev is not None else None
            if entry.prev_hash != expected_prev:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id), expected_prev or "None", entry.prev_hash or "None",
                )

            expected_payload_hash = hash_payload(_chained_payload(entry))
            if entry.payload_hash != expected_payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id), expected_payload_hash, entry.payload_hash,
                )

            expected_hash = hash_audit_entry(
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id),
                action=entry.action,
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)
            prev = entry

        logger.info(
            "audit_chain_valid",
            extra={"tenant_id": tenant_id, "entry_count": len(entries)},
        )
        return True
