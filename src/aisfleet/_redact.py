"""Helpers for safe debug logging.

Report payloads can carry hundreds of vessels. This module shrinks them
(and masks credential-like keys) before they are emitted in DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "token",
        "authorization",
        "cookie",
        "apikey",
        "api_key",
    }
)


def redact_for_log(
    value: Any,
    *,
    max_string: int = 512,
    max_items: int = 5,
    _depth: int = 0,
) -> Any:
    """Return a shortened, redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        items = [
            redact_for_log(v, max_string=max_string, max_items=max_items, _depth=_depth + 1)
            for v in value[:max_items]
        ]
        if len(value) > max_items:
            items.append(f"<{len(value) - max_items} more>")
        return items

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)
