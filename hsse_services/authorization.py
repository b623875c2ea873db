"""
hsse_services.authorization -- role-based Authorization Guard.

Responsibility:
    Answer ``can_perform(actor_id, capability, event_context)`` from the
    configured role-to-capability bindings and an injected role provider
    that knows which roles each actor holds.

Architecture position:
    Services layer.  Implements the kernel's ``AuthorizationGuard`` port;
    consumes ``HsseConfigurationSet`` from hsse_config.

Invariants:
    - Fails closed: an actor with no roles, or roles that grant nothing,
      is denied.
    - The kernel remains actor-agnostic; identity and role membership come
      from the ``RoleProvider``.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from hsse_config.schema import HsseConfigurationSet
from hsse_kernel.domain.ports import Capability, EventContext
from hsse_kernel.logging_config import get_logger

logger = get_logger("services.authorization")


class RoleProvider(Protocol):
    """Pluggable lookup of role membership."""

    def roles_for(self, actor_id: str) -> frozenset[str]:
        """Return every role the actor holds."""
        ...

    def actors_with_role(self, role: str) -> tuple[str, ...]:
        """Return every actor holding ``role``, for notification fan-out."""
        ...


class StaticRoleProvider:
    """In-memory role assignments, keyed by actor id."""

    def __init__(self, assignments: Mapping[str, Iterable[str]] | None = None):
        self._assignments: dict[str, frozenset[str]] = {
            actor: frozenset(roles) for actor, roles in (assignments or {}).items()
        }

    def assign(self, actor_id: str, *roles: str) -> None:
        self._assignments[actor_id] = self._assignments.get(actor_id, frozenset()) | set(roles)

    def roles_for(self, actor_id: str) -> frozenset[str]:
        return self._assignments.get(actor_id, frozenset())

    def actors_with_role(self, role: str) -> tuple[str, ...]:
        return tuple(sorted(a for a, roles in self._assignments.items() if role in roles))


def check_capability(
    config: HsseConfigurationSet,
    assigned_roles: Iterable[str],
    capability: Capability | str,
) -> tuple[bool, str]:
    """Check whether any of ``assigned_roles`` grants ``capability``.

    Returns:
        (allowed, reason). reason is empty when allowed.
    """
    capability = Capability(capability)
    roles = tuple(assigned_roles)
    if not roles:
        return (False, "actor holds no roles")
    if capability.value not in config.capabilities_for(roles):
        return (False, f"capability '{capability.value}' not granted to roles {sorted(roles)}")
    return (True, "")


class RoleBasedAuthorizationGuard:
    """``AuthorizationGuard`` backed by configuration and a role provider."""

    def __init__(self, config: HsseConfigurationSet, role_provider: RoleProvider):
        self._config = config
        self._roles = role_provider

    @property
    def role_provider(self) -> RoleProvider:
        return self._roles

    def can_perform(
        self,
        actor_id: str,
        capability: Capability,
        event_context: EventContext | None,
    ) -> bool:
        allowed, reason = check_capability(
            self._config, self._roles.roles_for(actor_id), capability,
        )
        if not allowed:
            logger.debug(
                "authorization_denied",
                extra={
                    "capability": Capability(capability).value,
                    "reason": reason,
                    "event_id": event_context.event_id if event_context else None,
                },
            )
        return allowed
