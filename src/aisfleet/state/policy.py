"""Deterministic merge policy.

This module contains *no* payload parsing. The ingestion boundary is
responsible for producing normalized values and timestamps.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timedelta
from typing import Any

from aisfleet._constants import BULK_LOAD_GUARD_SECONDS

_INVALID_IDS = frozenset({"undefined", "null"})


def is_valid_vessel_id(vessel_id: Any) -> bool:
    """Return True if *vessel_id* may be used as a registry key."""
    if not isinstance(vessel_id, str) or not vessel_id:
        return False
    if vessel_id in _INVALID_IDS:
        return False
    return "undefined" not in vessel_id


def _normalize_numbers(value: Any) -> Any:
    # JSON has a single number type: 5.0 and 5 serialize identically.
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_numbers(item) for item in value]
    return value


def _canonical(value: Any) -> str:
    return json.dumps(_normalize_numbers(value), sort_keys=True, separators=(",", ":"), default=repr)


def values_equal(left: Any, right: Any) -> bool:
    """Structural equality as seen on the wire.

    Values are compared through their canonical JSON form, so ``1`` and
    ``True`` differ, ``5`` and ``5.0`` are equal, and dict key order does
    not matter.
    """
    if left is right:
        return True
    return _canonical(left) == _canonical(right)


def is_stale(now: datetime, last_update: datetime, max_age: timedelta) -> bool:
    return now - last_update > max_age


def should_accept_cloud_record(
    *,
    existing_last_update: datetime | None,
    existing_is_cloud: bool,
    incoming_timestamp: datetime,
    now: datetime,
    bulk_load_guard: timedelta = timedelta(seconds=BULK_LOAD_GUARD_SECONDS),
) -> bool:
    """Decide whether a cloud record may replace what the registry holds.

    Policy:
    - No existing record: accept.
    - Existing record holds local observations: reject (local always wins,
      regardless of timestamps).
    - Existing record is cloud-sourced and was stamped within the bulk-load
      guard window: accept (its timestamp is probably synthetic).
    - Otherwise accept only when the incoming timestamp is strictly newer.
    """
    if existing_last_update is None:
        return True
    if not existing_is_cloud:
        return False
    if now - existing_last_update < bulk_load_guard:
        return True
    return incoming_timestamp > existing_last_update
