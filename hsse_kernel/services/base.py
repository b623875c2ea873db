"""
BaseService -- abstract base for kernel services.

Every write-side service receives a SQLAlchemy ``Session`` and uses
``session.flush()`` -- never ``session.commit()``.  The orchestrator's
``session_scope()`` owns commit/rollback, which is what makes a status
change and its audit entry one atomic unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from hsse_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
