"""Shared actors, tenants and test doubles for the test suite."""

from hsse_kernel.domain.closure import ClosureChecklist

TENANT_ID = "tenant-acme"
OTHER_TENANT_ID = "tenant-globex"

REPORTER = "reporter-1"
OTHER_REPORTER = "reporter-2"
DEPT_REP = "dept-rep-1"
HSSE_OFFICER = "hsse-officer-1"
HSSE_MANAGER = "hsse-manager-1"
INVESTIGATOR = "investigator-1"
ACTION_OWNER = "owner-1"
LINE_MANAGER = "line-manager-1"
CONTRACT_CONTROLLER = "controller-1"
NOBODY = "nobody-1"

ROLE_ASSIGNMENTS = {
    REPORTER: ("reporter",),
    OTHER_REPORTER: ("reporter",),
    DEPT_REP: ("dept_rep",),
    HSSE_OFFICER: ("hsse_officer",),
    HSSE_MANAGER: ("hsse_manager",),
    INVESTIGATOR: ("investigator",),
    ACTION_OWNER: ("action_owner",),
    LINE_MANAGER: ("line_manager",),
    CONTRACT_CONTROLLER: ("contract_controller",),
}

COMPLETE_CHECKLIST = ClosureChecklist.complete()


class RecordingNotifier:
    """Notifier test double; optionally fails every call."""

    def __init__(self):
        self.sent: list[tuple[str, str, tuple[str, ...], tuple[str, ...]]] = []
        self.fail_with: Exception | None = None

    def notify(self, event_id, topic, recipients, channel_hints):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((event_id, topic, tuple(recipients), tuple(channel_hints)))

    def topics(self) -> list[str]:
        return [topic for _, topic, _, _ in self.sent]

    def for_topic(self, topic: str) -> list[tuple[str, str, tuple[str, ...], tuple[str, ...]]]:
        return [sent for sent in self.sent if sent[1] == topic]
