"""
Reviewer decisions and input validation (``hsse_kernel.domain.decisions``).

Each review step accepts a closed set of decisions.  ``parse_decision``
turns caller input into the enum or raises ``InvalidDecisionError``;
``require_min_length`` enforces the minimum note/reason length.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import TypeVar

from hsse_kernel.exceptions import (
    DueDateNotInFutureError,
    InvalidDecisionError,
    TextTooShortError,
)

DEFAULT_MIN_TEXT_LENGTH = 10


class EscalationReviewDecision(str, Enum):
    REJECT = "reject"
    ACCEPT_OBSERVATION = "accept_observation"
    UPGRADE_INCIDENT = "upgrade_incident"


class RejectionReviewDecision(str, Enum):
    APPROVE_REJECTION = "approve_rejection"
    REJECT_REJECTION = "reject_rejection"


class ContractControllerDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class ValidationDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ApprovalDecision(str, Enum):
    """Approve/reject decisions (extensions, final closure)."""

    APPROVE = "approve"
    REJECT = "reject"


E = TypeVar("E", bound=Enum)


def parse_decision(enum_cls: type[E], value: object, operation: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidDecisionError(
            operation, value, [member.value for member in enum_cls]
        ) from None


def require_min_length(field: str, text: str | None, min_length: int) -> str:
    """Return the stripped text, or raise if shorter than ``min_length``."""
    stripped = (text or "").strip()
    if len(stripped) < min_length:
        raise TextTooShortError(field, min_length, len(stripped))
    return stripped


def require_future_date(requested: date, today: date) -> date:
    if requested <= today:
        raise DueDateNotInFutureError(requested.isoformat(), today.isoformat())
    return requested
