"""
hsse_services.events -- in-process publication of workflow events.

Every successful orchestrator call emits ``WorkflowEventRecord``s after
commit.  Subscribers are plain callables; a failing subscriber is logged
and does not stop the others.
"""

from __future__ import annotations

from typing import Callable, Sequence

from hsse_kernel.domain.dtos import WorkflowEventRecord
from hsse_kernel.logging_config import get_logger

logger = get_logger("services.events")

Subscriber = Callable[[WorkflowEventRecord], None]


class WorkflowEventPublisher:

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.remove(subscriber)

    def publish(self, records: Sequence[WorkflowEventRecord]) -> None:
        for record in records:
            logger.info(
                "workflow_event",
                extra={
                    "entity_type": record.entity_type,
                    "entity_id": record.entity_id,
                    "action": record.action,
                    "old_status": record.old_status,
                    "new_status": record.new_status,
                },
            )
            for subscriber in tuple(self._subscribers):
                try:
                    subscriber(record)
                except Exception as e:  # noqa: BLE001
                    logger.warning(
                        "workflow_event_subscriber_failed",
                        extra={"action": record.action, "error": str(e)},
                    )
