"""
Pytest fixtures for the HSSE lifecycle engine test suite.

Provides:
- An in-memory SQLite database per test (tables created fresh)
- A deterministic clock, the default configuration and a static role map
- A recording notifier and a fully wired ApprovalOrchestrator
- Scenario helpers that drive events into a known state

Environment Variables:
- DATABASE_URL: optional database URL; defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import timedelta
from io import StringIO

import pytest

from hsse_config import get_active_config
from hsse_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from hsse_kernel.domain.clock import DeterministicClock
from hsse_kernel.domain.dtos import WorkflowContext
from hsse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from hsse_services.approval_orchestrator import ApprovalOrchestrator
from hsse_services.authorization import RoleBasedAuthorizationGuard, StaticRoleProvider
from tests.actors import (
    ACTION_OWNER,
    HSSE_OFFICER,
    INVESTIGATOR,
    REPORTER,
    ROLE_ASSIGNMENTS,
    TENANT_ID,
    RecordingNotifier,
)
from tests.kernel_doubles import AllowAllGuard, Kernel, build_kernel


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture hsse_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.submit_event(...)
            logs = captured_logs()
            assert any(r["message"] == "event_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hsse_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture
def engine():
    """Fresh schema per test."""
    reset_engine()
    eng = init_engine_from_url(get_database_url())
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session for direct kernel-level tests; rolled back afterwards."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """2026-01-15 09:00 UTC until advanced."""
    return DeterministicClock()


@pytest.fixture
def hsse_config():
    return get_active_config()


@pytest.fixture
def role_provider():
    return StaticRoleProvider(ROLE_ASSIGNMENTS)


@pytest.fixture
def authorization_guard(hsse_config, role_provider):
    return RoleBasedAuthorizationGuard(hsse_config, role_provider)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(session_factory, hsse_config, role_provider, notifier, deterministic_clock):
    return ApprovalOrchestrator(
        session_factory=session_factory,
        config=hsse_config,
        role_provider=role_provider,
        notifier=notifier,
        clock=deterministic_clock,
    )


@pytest.fixture
def allow_all_guard():
    return AllowAllGuard()


@pytest.fixture
def kernel(session, allow_all_guard, deterministic_clock) -> Kernel:
    """Kernel services on the test session, with every capability granted."""
    return build_kernel(session, allow_all_guard, deterministic_clock)


@pytest.fixture
def ctx():
    """Build a WorkflowContext for an actor in the default tenant."""

    def _ctx(actor_id: str, tenant_id: str = TENANT_ID) -> WorkflowContext:
        return WorkflowContext(tenant_id=tenant_id, actor_id=actor_id)

    return _ctx


# =============================================================================
# Scenario helpers
# =============================================================================


@pytest.fixture
def submit_event(orchestrator, ctx):
    """Submit an event as REPORTER and return its DTO."""

    def _submit(event_type: str = "incident", severity: int = 2, title: str = "Oil spill near pump 3"):
        return orchestrator.submit_event(
            ctx(REPORTER), event_type, severity, title, "Spotted during the morning walk",
        )

    return _submit


@pytest.fixture
def event_under_investigation(orchestrator, ctx, submit_event):
    """
    An incident in ``investigation_in_progress`` assigned to INVESTIGATOR.

    With ``validated=True`` it first goes through HSSE validation, so that
    ``hsse_validation_status`` is ``accepted`` (required to close
    severity >= 3).
    """

    def _make(severity: int = 2, validated: bool = False):
        event = submit_event("incident", severity)
        orchestrator.assign_investigator(ctx(HSSE_OFFICER), event.id, INVESTIGATOR)
        if validated:
            orchestrator.submit_for_validation(ctx(INVESTIGATOR), event.id)
            orchestrator.decide_hsse_validation(ctx(HSSE_OFFICER), event.id, "accept")
        return orchestrator.get_event(ctx(HSSE_OFFICER), event.id)

    return _make


@pytest.fixture
def covered_root_cause(orchestrator, ctx, deterministic_clock):
    """Record a root cause with one action driven to ``verified``."""

    def _cover(event_id, kind: str = "root_cause", description: str = "Worn gasket"):
        root_cause = orchestrator.record_root_cause(ctx(INVESTIGATOR), event_id, kind, description)
        action = orchestrator.assign_corrective_action(
            ctx(INVESTIGATOR),
            event_id,
            ACTION_OWNER,
            "Replace gasket",
            deterministic_clock.today() + timedelta(days=14),
            root_cause.id,
        )
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "start")
        orchestrator.transition_action(ctx(ACTION_OWNER), action.id, "complete")
        orchestrator.transition_action(ctx(INVESTIGATOR), action.id, "verify")
        return root_cause, action

    return _cover


@pytest.fixture
def open_action(orchestrator, ctx, event_under_investigation, deterministic_clock):
    """An ``assigned`` corrective action owned by ACTION_OWNER."""

    def _make(due_in_days: int = 14):
        event = event_under_investigation()
        action = orchestrator.assign_corrective_action(
            ctx(INVESTIGATOR),
            event.id,
            ACTION_OWNER,
            "Install drip tray",
            deterministic_clock.today() + timedelta(days=due_in_days),
        )
        return event, action

    return _make
