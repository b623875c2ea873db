"""ORM models.  Importing this package registers every table on Base.metadata."""

from hsse_kernel.models.action import CorrectiveActionModel
from hsse_kernel.models.audit_log import AuditEntityType, AuditLogEntryModel
from hsse_kernel.models.escalation import EscalationDecisionModel
from hsse_kernel.models.event import RootCauseModel, SafetyEventModel
from hsse_kernel.models.extension import ExtensionRequestModel
from hsse_kernel.models.sequence import SequenceCounter

__all__ = [
    "AuditEntityType",
    "AuditLogEntryModel",
    "CorrectiveActionModel",
    "EscalationDecisionModel",
    "ExtensionRequestModel",
    "RootCauseModel",
    "SafetyEventModel",
    "SequenceCounter",
]
