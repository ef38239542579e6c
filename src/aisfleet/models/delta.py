"""Bus delta message models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from aisfleet.clock import parse_timestamp


class PathValue(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    value: Any = None

    @property
    def has_value(self) -> bool:
        """False when the ``value`` key was absent (``null`` is a real value)."""
        return "value" in self.model_fields_set


class DeltaUpdate(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    source: Any = Field(default=None, validation_alias=AliasChoices("source", "$source"))
    timestamp: datetime | None = None
    values: list[PathValue] = Field(default_factory=list)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        # Entries without a usable path are skipped on their own, not with the update.
        return [
            item
            for item in value
            if isinstance(item, dict) and isinstance(item.get("path"), str) and item["path"]
        ]


class Delta(BaseModel):
    """A batch of timestamped path/value updates for one context."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    context: str | None = None
    updates: list[DeltaUpdate] = Field(default_factory=list)

    @field_validator("updates", mode="before")
    @classmethod
    def _coerce_updates(cls, value: Any) -> Any:
        return [] if value is None else value
