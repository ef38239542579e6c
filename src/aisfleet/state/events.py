"""Provenance tags and normalized field updates.

Both ingestion paths (local bus deltas, cloud nearby-vessel records) convert
their inputs into these shapes. Only the state/store layer merges them.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Provenance(StrEnum):
    LOCAL = "local"
    CLOUD = "cloud"


class FieldUpdate(BaseModel):
    """One path/value observation ready to be written to the registry."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    value: Any = None
    source: str | None = None
    timestamp: datetime | None = Field(
        default=None,
        description="Observation time; the writer substitutes processing time when missing.",
    )
