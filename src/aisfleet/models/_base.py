"""Base model for wire payloads.

Every inbound payload model inherits from :class:`AisBaseModel` which
provides:

* ``extra="ignore"`` so new upstream keys never break parsing.
* A ``model_validator(mode="before")`` that drops placeholder values
  (``None``, ``""``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AisBaseModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = AisBaseModel._clean_dict(values)
        # Keep a caller-supplied raw (kwargs construction); otherwise stash the payload.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
