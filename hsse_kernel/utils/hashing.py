"""
Hashing for the audit chain.

Payloads are hashed over their canonical JSON form (sorted keys, compact
separators, ISO dates, string UUIDs, enum values) so that re-validating
the chain months later reproduces the same digests byte for byte.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# Stands in for prev_hash on the first entry of a tenant's chain.
GENESIS = "GENESIS"


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"{type(value).__name__} cannot appear in an audit payload")


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def to_json_safe(data: dict) -> dict:
    """``data`` with dates, UUIDs and enums replaced by their JSON forms."""
    return json.loads(canonicalize_json(data))


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_entry(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Digest linking an entry to its predecessor in the tenant's chain."""
    link = prev_hash if prev_hash is not None else GENESIS
    return _sha256("|".join((entity_type, str(entity_id), action, payload_hash, link)))
