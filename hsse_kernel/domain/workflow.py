"""
Canonical workflow types (``hsse_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  Guard, Transition and
Workflow are defined once and used by both aggregates (safety events and
corrective actions) so every legal transition is declared in exactly one
table.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Every transition names the capability the Authorization Guard must grant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from hsse_kernel.exceptions import GuardFailedError, InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the aggregate's guard
    evaluator does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``action`` is the command that triggers it; ``capability`` is what the
    Authorization Guard must grant the actor.  ``audit_action`` is the name
    written to the audit log (defaults to ``action``).
    """
    from_state: str
    to_state: str
    action: str
    capability: str
    guard: Guard | None = None
    audit_action: str | None = None

    @property
    def audit_name(self) -> str:
        return self.audit_action or self.action


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an aggregate lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        if self.initial_state not in known:
            raise ValueError(f"{self.name}: initial state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has outgoing "
                    f"transition {t.action}"
                )

    def transitions_for(self, from_state: str, action: str) -> tuple[Transition, ...]:
        return tuple(
            t for t in self.transitions
            if t.from_state == from_state and t.action == action
        )

    def actions_from(self, from_state: str) -> tuple[str, ...]:
        """Commands available from a state, in declaration order, deduplicated."""
        seen: dict[str, None] = {}
        for t in self.transitions:
            if t.from_state == from_state:
                seen.setdefault(t.action, None)
        return tuple(seen)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


def _label(value: str) -> str:
    return getattr(value, "value", value)


GuardEvaluator = Callable[[Guard], "str | None"]
"""Returns None when the guard passes, or a human-readable failure reason."""


def plan_transition(
    workflow: Workflow,
    entity_id: str,
    current_state: str,
    action: str,
    evaluate_guard: GuardEvaluator,
) -> Transition:
    """Select the transition ``action`` fires from ``current_state``.

    Candidates are tried in declaration order; the first whose guard passes
    wins.  Pure: nothing is mutated.

    Raises:
        InvalidTransitionError: no transition for ``action`` leaves the state.
        GuardFailedError: transitions exist but every guard rejected.
    """
    candidates = workflow.transitions_for(current_state, action)
    if not candidates:
        raise InvalidTransitionError(workflow.name, _label(current_state), _label(action))

    failure: tuple[Guard, str] | None = None
    for candidate in candidates:
        if candidate.guard is None:
            return candidate
        reason = evaluate_guard(candidate.guard)
        if reason is None:
            return candidate
        if failure is None:
            failure = (candidate.guard, reason)

    guard, reason = failure
    raise GuardFailedError(entity_id, _label(action), guard.name, reason)
