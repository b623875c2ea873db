"""
HSSE Kernel - Lifecycle & Approval Orchestration

A severity-gated, multi-actor state machine for safety events with:
- A single central transition table per aggregate
- Optimistic compare-and-swap status changes
- Closure gating on checklist and corrective-action coverage
- Full auditability via a hash-chained, append-only audit log
"""

__version__ = "0.1.0"
