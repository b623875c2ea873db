"""
Severity Policy Resolver (``hsse_kernel.domain.severity``).

Responsibility
--------------
Maps an event's severity (1 lowest .. 5 highest) to the closure policy the
lifecycle must enforce.  Deterministic, pure, no I/O.

    severity | self close | expert validation | manager close
    ---------+------------+-------------------+--------------
      1, 2   |    yes     |        no         |      no
      3, 4   |    no      |        yes        |      no
       5     |    no      |        yes        |      yes

Failure modes
-------------
* ``InvalidSeverityError`` (a ``ValidationError``) for anything that is not
  an ``int`` in 1..5.  ``bool`` is rejected even though it subclasses int.
"""

from dataclasses import dataclass

from hsse_kernel.exceptions import InvalidSeverityError

MIN_SEVERITY = 1
MAX_SEVERITY = 5


@dataclass(frozen=True)
class SeverityPolicy:
    """Closure rules derived from a single severity level."""

    severity: int
    self_close_allowed: bool
    requires_expert_validation: bool
    requires_manager_close: bool


def validate_severity(severity: object) -> int:
    if (
        isinstance(severity, bool)
        or not isinstance(severity, int)
        or not MIN_SEVERITY <= severity <= MAX_SEVERITY
    ):
        raise InvalidSeverityError(severity)
    return severity


def resolve_policy(severity: int) -> SeverityPolicy:
    """Resolve the closure policy for a severity level.

    Raises:
        InvalidSeverityError: severity outside 1..5.
    """
    level = validate_severity(severity)
    return SeverityPolicy(
        severity=level,
        self_close_allowed=level <= 2,
        requires_expert_validation=level >= 3,
        requires_manager_close=level == MAX_SEVERITY,
    )
