"""Cloud nearby-vessels response models.

Units are as sent by the API: speeds in knots, angles in degrees.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import field_validator, model_validator

from aisfleet.clock import parse_timestamp
from aisfleet.ingestion.normalize import safe_float, safe_str, usable_mmsi
from aisfleet.models._base import AisBaseModel


class CloudPosition(AisBaseModel):
    latitude: float
    longitude: float
    timestamp: datetime | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinate(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class CloudNavigation(AisBaseModel):
    course_over_ground: float | None = None
    speed_over_ground: float | None = None
    heading: float | None = None
    rate_of_turn: float | None = None
    navigation_status: Any = None
    """Passed through untouched; the API sends text or AIS status codes."""
    timestamp: datetime | None = None

    @field_validator("course_over_ground", "speed_over_ground", "heading", "rate_of_turn", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class CloudVessel(AisBaseModel):
    """One vessel as returned by the nearby-vessels endpoint.

    Parameters
    ----------
    mmsi : str or None
        Maritime Mobile Service Identity; ``None`` when missing or a
        placeholder such as ``"undefined"``.
    name, call_sign, imo_number : str or None
        Static identification.
    design_length, design_beam, design_draft : float or None
        Dimensions in metres.
    last_position : CloudPosition or None
        Most recent position report; ``None`` without usable coordinates.
    position_timestamp : datetime or None
        Timestamp of the position report, kept even when its coordinates
        are unusable.
    latest_navigation : CloudNavigation or None
        Most recent dynamic navigation report.
    """

    mmsi: str | None = None
    name: str | None = None
    call_sign: str | None = None
    imo_number: str | None = None
    design_length: float | None = None
    design_beam: float | None = None
    design_draft: float | None = None
    last_position: CloudPosition | None = None
    position_timestamp: datetime | None = None
    latest_navigation: CloudNavigation | None = None

    @model_validator(mode="before")
    @classmethod
    def _capture_position_timestamp(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "position_timestamp" in values:
            return values
        position = values.get("last_position")
        if not isinstance(position, dict) or position.get("timestamp") is None:
            return values
        captured = dict(values)
        # Stash the payload as received, before the derived key is added.
        captured.setdefault("raw", dict(values))
        captured["position_timestamp"] = position["timestamp"]
        return captured

    @field_validator("position_timestamp", mode="before")
    @classmethod
    def _coerce_position_timestamp(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("mmsi", mode="before")
    @classmethod
    def _coerce_mmsi(cls, value: Any) -> str | None:
        return usable_mmsi(value)

    @field_validator("name", "call_sign", "imo_number", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("design_length", "design_beam", "design_draft", mode="before")
    @classmethod
    def _coerce_dimension(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        # Zero is the AIS "not available" value for dimensions.
        return parsed if parsed else None

    @field_validator("last_position", mode="before")
    @classmethod
    def _drop_unusable_position(cls, value: Any) -> Any:
        # A vessel without coordinates is still worth merging for its other fields.
        if not isinstance(value, dict):
            return value
        if safe_float(value.get("latitude")) is None or safe_float(value.get("longitude")) is None:
            return None
        return value

    @property
    def data_timestamp(self) -> datetime | None:
        """Authoritative timestamp: position report first, then navigation."""
        if self.position_timestamp is not None:
            return self.position_timestamp
        if self.last_position is not None and self.last_position.timestamp is not None:
            return self.last_position.timestamp
        if self.latest_navigation is not None:
            return self.latest_navigation.timestamp
        return None
