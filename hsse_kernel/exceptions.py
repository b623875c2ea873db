"""
Typed Exception Hierarchy for the HSSE Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval workflows have many failure paths that callers must tell apart: a
short rejection note is a user mistake, a lost approval race is a conflict,
and closing an event with uncovered root causes is a broken invariant.
Parsing message strings to tell these apart is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        orchestrator.decide_extension(ctx, request_id, "approve", notes)
    except ExtensionAlreadyDecidedError as e:
        api_response(code=e.code, request=e.request_id, status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from HsseKernelError:

    HsseKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidSeverityError
    |   +-- TextTooShortError
    |   +-- DueDateNotInFutureError
    |   +-- ChecklistIncompleteError
    |   +-- MissingInvestigatorError
    |   +-- InvalidDecisionError
    |
    +-- PermissionDeniedError
    |
    +-- ConflictError
    |   +-- InvalidTransitionError
    |   +-- StaleStatusError
    |   +-- DuplicateOpenExtensionError
    |   +-- ExtensionAlreadyDecidedError
    |   +-- SeverityChangePendingError
    |   +-- NoPendingSeverityChangeError
    |
    +-- NotFoundError
    |   +-- EventNotFoundError
    |   +-- ActionNotFoundError
    |   +-- ExtensionRequestNotFoundError
    |   +-- RootCauseNotFoundError
    |
    +-- InvariantViolationError
    |   +-- GuardFailedError
    |   +-- HsseValidationRequiredError
    |   +-- ActionCoverageError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
CATEGORIES
===============================================================================

    ValidationError         malformed input; the caller can fix and resend.
    PermissionDeniedError   the Authorization Guard said no.
    ConflictError           the entity is not in the expected state (lost
                            race, terminal request, duplicate open request).
    NotFoundError           unknown id within the caller's tenant.
    InvariantViolationError the request is well-formed but a lifecycle
                            invariant does not hold yet.

The orchestrator never partially applies an operation: any of these raised
before commit leaves state and audit history untouched.  Nothing is retried.

PermissionDeniedError is deliberately not named PermissionError so that it
does not shadow the builtin.
"""


class HsseKernelError(Exception):
    """
    Base exception for all HSSE kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HSSE_KERNEL_ERROR"


# Validation errors


class ValidationError(HsseKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidSeverityError(ValidationError):
    """Severity is not an integer in 1..5."""

    code: str = "INVALID_SEVERITY"

    def __init__(self, severity: object):
        self.severity = severity
        super().__init__(f"Severity must be an integer between 1 and 5, got {severity!r}")


class TextTooShortError(ValidationError):
    """A reason or notes field is shorter than the configured minimum."""

    code: str = "TEXT_TOO_SHORT"

    def __init__(self, field: str, min_length: int, actual_length: int):
        self.field = field
        self.min_length = min_length
        self.actual_length = actual_length
        super().__init__(
            f"{field} must be at least {min_length} characters "
            f"(got {actual_length})"
        )


class DueDateNotInFutureError(ValidationError):
    """Requested due date is today or earlier."""

    code: str = "DUE_DATE_NOT_IN_FUTURE"

    def __init__(self, requested_due_date: str, today: str):
        self.requested_due_date = requested_due_date
        self.today = today
        super().__init__(
            f"Requested due date {requested_due_date} must be after {today}"
        )


class ChecklistIncompleteError(ValidationError):
    """Closure checklist has unmet items."""

    code: str = "CHECKLIST_INCOMPLETE"

    def __init__(self, event_id: str, missing_items: list[str]):
        self.event_id = event_id
        self.missing_items = missing_items
        super().__init__(
            f"Closure checklist incomplete for event {event_id}: "
            f"{', '.join(missing_items)}"
        )


class MissingInvestigatorError(ValidationError):
    """An operation that assigns an investigator was called without one."""

    code: str = "MISSING_INVESTIGATOR"

    def __init__(self, event_id: str, operation: str):
        self.event_id = event_id
        self.operation = operation
        super().__init__(f"{operation} on event {event_id} requires an investigator_id")


class InvalidDecisionError(ValidationError):
    """Decision value is not one of the values the operation accepts."""

    code: str = "INVALID_DECISION"

    def __init__(self, operation: str, decision: object, allowed: list[str]):
        self.operation = operation
        self.decision = decision
        self.allowed = allowed
        super().__init__(
            f"Invalid decision {decision!r} for {operation}; "
            f"expected one of {', '.join(allowed)}"
        )


# Authorization


class PermissionDeniedError(HsseKernelError):
    """The Authorization Guard denied the actor the required capability."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, capability: str, entity_id: str | None = None):
        self.actor_id = actor_id
        self.capability = capability
        self.entity_id = entity_id
        target = f" on {entity_id}" if entity_id else ""
        super().__init__(f"Actor {actor_id} lacks capability {capability}{target}")


# Conflict errors


class ConflictError(HsseKernelError):
    """Base exception for entities not in the expected state."""

    code: str = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """No transition for this command leaves the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, current_status: str, command: str):
        self.entity_type = entity_type
        self.current_status = current_status
        self.command = command
        super().__init__(
            f"Cannot {command} {entity_type} in status '{current_status}'"
        )


class StaleStatusError(ConflictError):
    """Compare-and-swap lost: another actor changed the status first."""

    code: str = "STALE_STATUS"

    def __init__(self, entity_type: str, entity_id: str, expected_status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_status = expected_status
        super().__init__(
            f"{entity_type} {entity_id} is no longer in status "
            f"'{expected_status}': it was modified by another request"
        )


class DuplicateOpenExtensionError(ConflictError):
    """The action already has a pending extension request."""

    code: str = "DUPLICATE_OPEN_EXTENSION"

    def __init__(self, action_id: str, existing_request_id: str):
        self.action_id = action_id
        self.existing_request_id = existing_request_id
        super().__init__(
            f"Action {action_id} already has an open extension request "
            f"{existing_request_id}"
        )


class ExtensionAlreadyDecidedError(ConflictError):
    """The extension request is already approved or rejected."""

    code: str = "EXTENSION_ALREADY_DECIDED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Extension request {request_id} is already {status}"
        )


class SeverityChangePendingError(ConflictError):
    """A severity change awaits a manager decision."""

    code: str = "SEVERITY_CHANGE_PENDING"

    def __init__(self, event_id: str, operation: str):
        self.event_id = event_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} event {event_id} while a severity change is pending"
        )


class NoPendingSeverityChangeError(ConflictError):
    """There is no proposed severity change to decide."""

    code: str = "NO_PENDING_SEVERITY_CHANGE"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event {event_id} has no pending severity change")


# Not found errors


class NotFoundError(HsseKernelError):
    """Base exception for unknown ids."""

    code: str = "NOT_FOUND"


class EventNotFoundError(NotFoundError):
    """Event with given ID was not found in the tenant."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class ActionNotFoundError(NotFoundError):
    """Corrective action with given ID was not found in the tenant."""

    code: str = "ACTION_NOT_FOUND"

    def __init__(self, action_id: str):
        self.action_id = action_id
        super().__init__(f"Corrective action not found: {action_id}")


class ExtensionRequestNotFoundError(NotFoundError):
    """Extension request with given ID was not found in the tenant."""

    code: str = "EXTENSION_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Extension request not found: {request_id}")


class RootCauseNotFoundError(NotFoundError):
    """Root cause with given ID was not found on the event."""

    code: str = "ROOT_CAUSE_NOT_FOUND"

    def __init__(self, root_cause_id: str):
        self.root_cause_id = root_cause_id
        super().__init__(f"Root cause not found: {root_cause_id}")


# Invariant violations


class InvariantViolationError(HsseKernelError):
    """Base exception for lifecycle invariants that do not hold."""

    code: str = "INVARIANT_VIOLATION"


class GuardFailedError(InvariantViolationError):
    """The transition exists but its severity/type guard rejects the event."""

    code: str = "GUARD_FAILED"

    def __init__(self, event_id: str, command: str, guard: str, reason: str):
        self.event_id = event_id
        self.command = command
        self.guard = guard
        self.reason = reason
        super().__init__(
            f"Guard '{guard}' blocked {command} on event {event_id}: {reason}"
        )


class HsseValidationRequiredError(InvariantViolationError):
    """Severity requires accepted HSSE validation before closure."""

    code: str = "HSSE_VALIDATION_REQUIRED"

    def __init__(self, event_id: str, severity: int, validation_status: str):
        self.event_id = event_id
        self.severity = severity
        self.validation_status = validation_status
        super().__init__(
            f"Event {event_id} (severity {severity}) requires accepted HSSE "
            f"validation before closure; current validation status is "
            f"'{validation_status}'"
        )


class ActionCoverageError(InvariantViolationError):
    """A root cause or contributing factor lacks a verified or closed action."""

    code: str = "ACTION_COVERAGE_INCOMPLETE"

    def __init__(self, event_id: str, uncovered: list[str]):
        self.event_id = event_id
        self.uncovered = uncovered
        super().__init__(
            f"Event {event_id} has root causes without a verified or closed "
            f"corrective action: {'; '.join(uncovered)}"
        )


# Audit errors


class AuditError(HsseKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability errors


class ImmutabilityError(HsseKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted modification of an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
