"""
Module: hsse_kernel.models.sequence
Responsibility: Named counter rows for SequenceService.

Each row is a named sequence with its current value; row-level locking in
SequenceService keeps allocation monotonic under concurrency.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from hsse_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "audit_log:<tenant>", "event_ref:<tenant>:OBS:2026"
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
