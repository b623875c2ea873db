"""
Module: hsse_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors, plus the
    tenant-scoped SELECT builder every read in the engine goes through.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Tenant partitioning: every query built by ``scoped_select`` filters on
      tenant_id.
    - Soft delete: rows with deleted_at set are invisible unless the caller
      asks for them explicitly.
    - Read-only access: selectors never add, flush, delete or commit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from hsse_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def scoped_select(
    model: type[ModelType],
    tenant_id: str,
    include_deleted: bool = False,
) -> Select:
    """SELECT ``model`` rows for one tenant, hiding soft-deleted rows."""
    stmt = select(model).where(model.tenant_id == tenant_id)
    if not include_deleted and hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))
    return stmt


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
