"""Database layer - engine, base classes, immutability listeners."""

from hsse_kernel.db.base import Base, TenantScopedBase, UTCDateTime, UUIDString
from hsse_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TenantScopedBase",
    "UTCDateTime",
    "UUIDString",
]
