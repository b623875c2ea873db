"""
Closure Gate (``hsse_kernel.domain.closure``).

Responsibility
--------------
Decides whether an event may be submitted for closure, from two inputs:

(a) the caller-supplied checklist (evidence collected, witnesses
    interviewed, root-cause analysis complete, actions assigned), and
(b) coverage -- every root cause and contributing factor recorded for the
    event must have at least one linked corrective action in
    ``verified`` or ``closed``.

Returns ``allowed=False`` with human-readable missing items; never mutates.

Architecture position
---------------------
**Kernel domain layer** -- pure.  The closure gate service loads the
coverage rows; this module only evaluates them.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Mapping, Sequence

from hsse_kernel.domain.lifecycle import COVERING_ACTION_STATUSES, ActionStatus

CHECKLIST_LABELS: dict[str, str] = {
    "evidence_collected": "Evidence collected",
    "witnesses_interviewed": "Witnesses interviewed",
    "root_cause_analysis_complete": "Root-cause analysis complete",
    "actions_assigned": "Corrective actions assigned",
}


@dataclass(frozen=True)
class ClosureChecklist:
    evidence_collected: bool = False
    witnesses_interviewed: bool = False
    root_cause_analysis_complete: bool = False
    actions_assigned: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, bool]) -> ClosureChecklist:
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown checklist items: {', '.join(sorted(unknown))}")
        return cls(**{k: bool(v) for k, v in values.items()})

    @classmethod
    def complete(cls) -> ClosureChecklist:
        return cls(True, True, True, True)

    def unmet(self, required: Sequence[str] | None = None) -> list[str]:
        """Names of required items that are not ticked, in declaration order."""
        names = [f.name for f in fields(self)]
        if required is not None:
            names = [n for n in names if n in set(required)]
        return [n for n in names if not getattr(self, n)]


@dataclass(frozen=True)
class RootCauseCoverage:
    """A root cause or contributing factor and the statuses of its actions."""

    root_cause_id: str
    kind: str
    description: str
    action_statuses: tuple[ActionStatus, ...] = ()

    @property
    def covered(self) -> bool:
        return any(ActionStatus(s) in COVERING_ACTION_STATUSES for s in self.action_statuses)

    @property
    def label(self) -> str:
        kind = self.kind.replace("_", " ")
        return f"{kind[:1].upper()}{kind[1:]} '{self.description}' has no verified or closed corrective action"


@dataclass(frozen=True)
class ClosureGateResult:
    allowed: bool
    missing_items: tuple[str, ...]
    unmet_checklist: tuple[str, ...] = ()
    uncovered_root_causes: tuple[str, ...] = ()


def evaluate_closure_gate(
    checklist: ClosureChecklist,
    coverage: Sequence[RootCauseCoverage],
    required_items: Sequence[str] | None = None,
) -> ClosureGateResult:
    """Evaluate checklist and coverage; pure."""
    unmet = checklist.unmet(required_items)
    uncovered = [rc for rc in coverage if not rc.covered]

    missing = [CHECKLIST_LABELS[name] for name in unmet]
    missing.extend(rc.label for rc in uncovered)

    return ClosureGateResult(
        allowed=not missing,
        missing_items=tuple(missing),
        unmet_checklist=tuple(unmet),
        uncovered_root_causes=tuple(rc.root_cause_id for rc in uncovered),
    )
