"""
YAML loader for HSSE configuration sets.

Loads YAML fragments from a configuration-set directory and parses them
into the frozen dataclasses in ``hsse_config.schema``.  A set directory
contains ``root.yaml`` and, optionally, ``roles.yaml`` and
``notifications.yaml``; fragments are merged in that order.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from hsse_config.schema import (
    ConfigError,
    HsseConfigurationSet,
    NotificationRoute,
    RoleDefinition,
    TextRules,
)
from hsse_kernel.domain.closure import CHECKLIST_LABELS
from hsse_kernel.domain.ports import Capability

FRAGMENT_FILES = ("root.yaml", "roles.yaml", "notifications.yaml")

_EXTENSION_APPROVER_CAPABILITIES = frozenset({
    Capability.APPROVE_EXTENSION_LINE.value,
    Capability.APPROVE_EXTENSION_HSSE.value,
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _str_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_role(data: dict[str, Any]) -> RoleDefinition:
    return RoleDefinition(
        name=data["name"],
        capabilities=_str_tuple(data.get("capabilities")),
        description=data.get("description", ""),
    )


def parse_text_rules(data: dict[str, Any] | None) -> TextRules:
    data = data or {}
    defaults = TextRules()
    return TextRules(
        extension_reason=int(data.get("extension_reason", defaults.extension_reason)),
        dept_rep_notes=int(data.get("dept_rep_notes", defaults.dept_rep_notes)),
        escalation_reject_notes=int(
            data.get("escalation_reject_notes", defaults.escalation_reject_notes)
        ),
        final_closure_reject_notes=int(
            data.get("final_closure_reject_notes", defaults.final_closure_reject_notes)
        ),
        severity_change_justification=int(
            data.get("severity_change_justification", defaults.severity_change_justification)
        ),
    )


def parse_notification_route(data: dict[str, Any]) -> NotificationRoute:
    return NotificationRoute(
        topic=data["topic"],
        recipient_roles=_str_tuple(data.get("recipient_roles")),
        channel_hints=_str_tuple(data.get("channel_hints")),
        include_reporter=bool(data.get("include_reporter", False)),
        include_investigator=bool(data.get("include_investigator", False)),
        include_action_owner=bool(data.get("include_action_owner", False)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of the merged fragments."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def merge_fragments(set_dir: Path) -> dict[str, Any]:
    """Merge the fragment files of one set directory into a single dict.

    Raises:
        FileNotFoundError: if ``root.yaml`` is missing.
    """
    root_file = set_dir / "root.yaml"
    if not root_file.exists():
        raise FileNotFoundError(f"No root.yaml in configuration set {set_dir}")

    merged: dict[str, Any] = {}
    for name in FRAGMENT_FILES:
        path = set_dir / name
        if path.exists():
            merged.update(load_yaml_file(path))
    return merged


def parse_configuration_set(data: dict[str, Any]) -> HsseConfigurationSet:
    """
    Parse merged fragment data into an ``HsseConfigurationSet``.

    Raises:
        ConfigError: if required keys are missing or values are malformed.
    """
    config_id = str(data.get("config_id") or "<unnamed>")
    try:
        config = HsseConfigurationSet(
            config_id=data["config_id"],
            version=int(data.get("version", 1)),
            description=data.get("description", ""),
            roles=tuple(parse_role(r) for r in data.get("roles") or ()),
            extension_approval_chain=_str_tuple(
                data.get("extension_approval_chain", [Capability.APPROVE_EXTENSION_HSSE.value])
            ),
            closure_checklist=_str_tuple(
                data.get("closure_checklist", list(CHECKLIST_LABELS))
            ),
            text_rules=parse_text_rules(data.get("text_rules")),
            notifications=tuple(
                parse_notification_route(n) for n in data.get("notifications") or ()
            ),
            checksum=compute_checksum(data),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(config_id, [f"malformed configuration: {exc!r}"]) from exc
    return config


def validate_configuration_set(config: HsseConfigurationSet) -> list[str]:
    """Return every structural problem found; an empty list means valid."""
    errors: list[str] = []
    known_capabilities = {c.value for c in Capability}

    seen_roles: set[str] = set()
    for role in config.roles:
        if role.name in seen_roles:
            errors.append(f"duplicate role {role.name!r}")
        seen_roles.add(role.name)
        for capability in role.capabilities:
            if capability not in known_capabilities:
                errors.append(f"role {role.name!r} grants unknown capability {capability!r}")

    if not config.extension_approval_chain:
        errors.append("extension_approval_chain must have at least one level")
    for capability in config.extension_approval_chain:
        if capability not in _EXTENSION_APPROVER_CAPABILITIES:
            errors.append(
                f"extension_approval_chain level {capability!r} is not an "
                "extension approval capability"
            )

    for item in config.closure_checklist:
        if item not in CHECKLIST_LABELS:
            errors.append(f"unknown closure checklist item {item!r}")

    for name in (
        "extension_reason",
        "dept_rep_notes",
        "escalation_reject_notes",
        "final_closure_reject_notes",
        "severity_change_justification",
    ):
        if getattr(config.text_rules, name) < 1:
            errors.append(f"text_rules.{name} must be at least 1")

    seen_topics: set[str] = set()
    for route in config.notifications:
        if route.topic in seen_topics:
            errors.append(f"duplicate notification topic {route.topic!r}")
        seen_topics.add(route.topic)
        for role in route.recipient_roles:
            if role not in seen_roles:
                errors.append(f"notification topic {route.topic!r} names unknown role {role!r}")
    return errors


def load_configuration_set(set_dir: Path) -> HsseConfigurationSet:
    """Merge, parse and validate one configuration-set directory.

    Raises:
        FileNotFoundError: if ``root.yaml`` is missing.
        ConfigError: if the set fails parsing or validation.
    """
    config = parse_configuration_set(merge_fragments(set_dir))
    errors = validate_configuration_set(config)
    if errors:
        raise ConfigError(config.config_id, errors)
    return config
