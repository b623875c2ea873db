"""
hsse_services.notifications -- notification routing and best-effort dispatch.

Responsibility:
    ``NotificationRouter`` turns a committed workflow step (a topic plus
    the event's participants) into a ``NotificationIntent`` using the
    configured routes.  ``NotificationDispatcher`` hands intents to the
    external ``Notifier`` after the unit of work has committed.

Architecture position:
    Services layer.  Consumes the kernel's ``Notifier`` port and the
    notification routes from hsse_config.

Invariants:
    - Dispatch never raises: a failing Notifier is logged and the next
      intent is still attempted.  Committed state is never rolled back or
      retried because of a notification.
    - Topics without a configured route, or with no resolvable recipient,
      produce no intent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from hsse_config.schema import HsseConfigurationSet
from hsse_kernel.domain.dtos import NotificationIntent
from hsse_kernel.domain.ports import Notifier
from hsse_kernel.logging_config import get_logger
from hsse_services.authorization import RoleProvider

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class Participants:
    """People attached to the event or action a topic is about."""

    reporter_id: str | None = None
    investigator_id: str | None = None
    action_owner_id: str | None = None


class NotificationRouter:
    """Resolves topic routes from configuration into concrete intents."""

    def __init__(self, config: HsseConfigurationSet, role_provider: RoleProvider):
        self._config = config
        self._roles = role_provider

    def intent_for(
        self,
        event_id: str,
        topic: str,
        participants: Participants,
    ) -> NotificationIntent | None:
        route = self._config.route_for(topic)
        if route is None:
            return None

        recipients: list[str] = []
        for role in route.recipient_roles:
            recipients.extend(self._roles.actors_with_role(role))
        if route.include_reporter and participants.reporter_id:
            recipients.append(participants.reporter_id)
        if route.include_investigator and participants.investigator_id:
            recipients.append(participants.investigator_id)
        if route.include_action_owner and participants.action_owner_id:
            recipients.append(participants.action_owner_id)

        unique = tuple(dict.fromkeys(recipients))
        if not unique:
            logger.debug("notification_no_recipients", extra={"topic": topic})
            return None
        return NotificationIntent(
            event_id=event_id,
            topic=topic,
            recipients=unique,
            channel_hints=route.channel_hints,
        )


class NotificationDispatcher:
    """Fire-and-forget delivery of intents to the external Notifier."""

    def __init__(self, notifier: Notifier):
        self._notifier = notifier

    def dispatch(self, intents: Sequence[NotificationIntent]) -> int:
        """Deliver each intent; return how many the Notifier accepted."""
        delivered = 0
        for intent in intents:
            try:
                self._notifier.notify(
                    intent.event_id,
                    intent.topic,
                    intent.recipients,
                    intent.channel_hints,
                )
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "notification_dispatch_failed",
                    extra={
                        "topic": intent.topic,
                        "recipient_count": len(intent.recipients),
                        "error": str(e),
                    },
                )
                continue
            delivered += 1
        return delivered


class LoggingNotifier:
    """Notifier that only writes a structured log line per intent."""

    def notify(
        self,
        event_id: str,
        topic: str,
        recipients: Sequence[str],
        channel_hints: Sequence[str],
    ) -> None:
        logger.info(
            "notification_intent",
            extra={
                "topic": topic,
                "target_event_id": event_id,
                "recipients": list(recipients),
                "channel_hints": list(channel_hints),
            },
        )
