"""
HsseConfigurationSet schema.

Defines the human-authored, reviewable configuration for the lifecycle
engine.  YAML fragments are parsed into these types by the loader; the
result is frozen and handed to the orchestrator and the authorization
guard.  Nothing here executes workflow logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class ConfigError(ValueError):
    """Raised when a configuration set is structurally invalid."""

    def __init__(self, config_id: str, errors: list[str] | tuple[str, ...]):
        self.config_id = config_id
        self.errors = tuple(errors)
        super().__init__(
            f"Configuration {config_id!r} is invalid:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleDefinition:
    """A named role and the capabilities it grants."""

    name: str
    capabilities: tuple[str, ...]
    description: str = ""


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextRules:
    """Minimum lengths for free-text justifications."""

    extension_reason: int = 10
    dept_rep_notes: int = 10
    escalation_reject_notes: int = 10
    final_closure_reject_notes: int = 10
    severity_change_justification: int = 10


@dataclass(frozen=True)
class NotificationRoute:
    """Who hears about a topic, and over which channels.

    Recipients are the union of every actor holding one of
    ``recipient_roles`` plus the event participants flagged below.
    """

    topic: str
    recipient_roles: tuple[str, ...] = ()
    channel_hints: tuple[str, ...] = ()
    include_reporter: bool = False
    include_investigator: bool = False
    include_action_owner: bool = False


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HsseConfigurationSet:
    """The assembled configuration for one deployment."""

    config_id: str
    version: int
    description: str = ""
    roles: tuple[RoleDefinition, ...] = ()
    extension_approval_chain: tuple[str, ...] = ("approve_extension_hsse",)
    closure_checklist: tuple[str, ...] = ()
    text_rules: TextRules = field(default_factory=TextRules)
    notifications: tuple[NotificationRoute, ...] = ()
    checksum: str = ""

    def role(self, name: str) -> RoleDefinition | None:
        for role in self.roles:
            if role.name == name:
                return role
        return None

    def capabilities_for(self, role_names) -> frozenset[str]:
        granted: set[str] = set()
        for name in role_names:
            role = self.role(name)
            if role is not None:
                granted.update(role.capabilities)
        return frozenset(granted)

    def route_for(self, topic: str) -> NotificationRoute | None:
        for route in self.notifications:
            if route.topic == topic:
                return route
        return None
