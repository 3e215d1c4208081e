"""
Movement hashing and deterministic event ids.

The ledger stores a hash of every movement payload so that a resent event
can be told apart from a conflicting one with the same id.  Two payloads
that describe the same movement must hash identically regardless of key
order or how a quantity was written ("10", "10.0", "10.000").

Event ids for movements generated by the system (GRN check-ins) are derived
rather than random, so a retried approval addresses the same ledger rows.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid5

GRN_EVENT_NAMESPACE = UUID("6f1c2b8e-4a3d-5e7f-9b1a-2c3d4e5f6a7b")


def _movement_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, date):
        # datetime is a date subclass; both go out as ISO strings
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Cannot hash movement field of type {type(obj).__name__}")


def canonical_movement(payload: dict[str, Any]) -> str:
    """Sorted-key, whitespace-free JSON for a movement payload."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        default=_movement_value,
    )


def movement_hash(payload: dict[str, Any]) -> str:
    """SHA-256 hex digest of ``canonical_movement(payload)``."""
    return hashlib.sha256(canonical_movement(payload).encode("utf-8")).hexdigest()


def grn_check_in_event_id(grn_id: UUID | str, grn_item_id: UUID | str) -> UUID:
    """The ledger event id for the check-in of one GRN item."""
    return uuid5(GRN_EVENT_NAMESPACE, f"{grn_id}:{grn_item_id}")
