"""Normalization helpers.

Centralizes defensive parsing of bus and cloud payloads.
"""

from __future__ import annotations

import math
import re
from typing import Any

from aisfleet._constants import MMSI_URN_PREFIX, VESSEL_CONTEXT_PREFIX
from aisfleet.state.policy import is_valid_vessel_id

_CONTEXT_RE = re.compile(r"^vessels\.(.+)$")
_PLACEHOLDER_IDS = frozenset({"", "undefined", "null", "none"})


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def vessel_id_from_context(context: Any) -> str | None:
    """Extract the vessel identifier from a ``vessels.<id>`` context.

    Returns ``None`` for other contexts and for invalid identifiers.
    """
    if not isinstance(context, str):
        return None
    match = _CONTEXT_RE.match(context)
    if match is None:
        return None
    vessel_id = match.group(1)
    return vessel_id if is_valid_vessel_id(vessel_id) else None


def context_for(vessel_id: str) -> str:
    return f"{VESSEL_CONTEXT_PREFIX}{vessel_id}"


def usable_mmsi(value: Any) -> str | None:
    """Return the MMSI as text, or ``None`` when it is missing or a placeholder."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = safe_str(value)
    if text is None or text.lower() in _PLACEHOLDER_IDS:
        return None
    return text


def vessel_id_for_mmsi(mmsi: str) -> str:
    return f"{MMSI_URN_PREFIX}{mmsi}"


def mmsi_from_urn(urn: str | None) -> str | None:
    """Pull the MMSI out of an identifier such as ``urn:mrn:imo:mmsi:123456789``."""
    if not urn or "mmsi:" not in urn:
        return None
    return safe_str(urn.split("mmsi:", 1)[1])


def source_label(source: Any) -> str | None:
    """Normalize a bus source descriptor to a plain label."""
    if isinstance(source, dict):
        for key in ("label", "type", "src"):
            label = safe_str(source.get(key))
            if label is not None:
                return label
        return None
    return safe_str(source)
