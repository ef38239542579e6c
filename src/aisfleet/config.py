"""Plugin configuration for aisfleet."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from aisfleet._constants import (
    API_BASE_URL,
    PLUGIN_ID,
    REPORT_BATCH_DELAY_SECONDS,
    REPORT_BATCH_SIZE,
    REQUEST_TIMEOUT_SECONDS,
)
from aisfleet.exceptions import AisFleetConfigError

INTERVAL_MINUTES_DEFAULT = 5
INTERVAL_MINUTES_MIN = 1
INTERVAL_MINUTES_MAX = 15
RADIUS_NM_DEFAULT = 100
RADIUS_NM_MIN = 10
RADIUS_NM_MAX = 100


def _clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


def _as_number(name: str, value: Any, default: float) -> float:
    # Host settings arrive as JSON; 0/"" mean "not set" just like a missing key.
    if value is None or value == "" or value == 0:
        return default
    if isinstance(value, bool):
        raise AisFleetConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise AisFleetConfigError(f"{name} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class AisFleetConfig:
    """Plugin configuration.

    Parameters
    ----------
    interval_minutes : float
        How often vessel data is submitted and nearby vessels are fetched.
        Clamped to ``[1, 15]``.
    radius_nm : float
        Search radius for the nearby-vessels query, in nautical miles.
        Clamped to ``[10, 100]``.
    subscription_period_ms : int
        Delivery period requested from the bus subscription.
    api_base_url : str
        Base URL of the AIS Fleet API (must end with ``/``).
    request_timeout : float
        Total timeout applied to every outbound request, in seconds.
    batch_size : int
        Number of vessels per report submission.
    batch_delay : float
        Pause between report batches, in seconds.
    plugin_id : str
        Provider id used when injecting deltas back onto the bus.
    """

    interval_minutes: float = INTERVAL_MINUTES_DEFAULT
    radius_nm: float = RADIUS_NM_DEFAULT
    subscription_period_ms: int = 5000
    api_base_url: str = API_BASE_URL
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    batch_size: int = REPORT_BATCH_SIZE
    batch_delay: float = REPORT_BATCH_DELAY_SECONDS
    plugin_id: str = PLUGIN_ID

    def __post_init__(self) -> None:
        interval = _as_number("interval_minutes", self.interval_minutes, INTERVAL_MINUTES_DEFAULT)
        radius = _as_number("radius_nm", self.radius_nm, RADIUS_NM_DEFAULT)
        object.__setattr__(self, "interval_minutes", _clamp(interval, INTERVAL_MINUTES_MIN, INTERVAL_MINUTES_MAX))
        object.__setattr__(self, "radius_nm", _clamp(radius, RADIUS_NM_MIN, RADIUS_NM_MAX))
        if self.batch_size < 1:
            raise AisFleetConfigError(f"batch_size must be positive, got {self.batch_size}")
        if not self.api_base_url.endswith("/"):
            object.__setattr__(self, "api_base_url", self.api_base_url + "/")

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None, **overrides: Any) -> AisFleetConfig:
        """Create configuration from the host's plugin settings mapping.

        Recognises ``intervalMinutes`` and ``radiusNauticalMiles``. Explicit
        keyword arguments override settings values.
        """
        settings = settings or {}
        config_kwargs: dict[str, Any] = {}
        if "intervalMinutes" in settings:
            config_kwargs["interval_minutes"] = settings["intervalMinutes"]
        if "radiusNauticalMiles" in settings:
            config_kwargs["radius_nm"] = settings["radiusNauticalMiles"]
        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> AisFleetConfig:
        """Create configuration from ``AISFLEET_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "AISFLEET_INTERVAL_MINUTES": ("interval_minutes", float),
            "AISFLEET_RADIUS_NM": ("radius_nm", float),
            "AISFLEET_SUBSCRIPTION_PERIOD_MS": ("subscription_period_ms", int),
            "AISFLEET_API_BASE_URL": ("api_base_url", str),
            "AISFLEET_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, (field_name, convert) in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise AisFleetConfigError(f"{env_key} is not a valid {convert.__name__}: {val!r}") from exc

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


def settings_schema() -> dict[str, Any]:
    """JSON schema describing the user-facing plugin settings."""
    return {
        "type": "object",
        "properties": {
            "intervalMinutes": {
                "type": "number",
                "title": "Submit Interval (minutes)",
                "description": "How often to submit vessel data to the API",
                "default": INTERVAL_MINUTES_DEFAULT,
                "minimum": INTERVAL_MINUTES_MIN,
                "maximum": INTERVAL_MINUTES_MAX,
            },
            "radiusNauticalMiles": {
                "type": "number",
                "title": "Cloud Vessel Radius (nautical miles)",
                "description": "Radius for fetching nearby vessels from cloud API",
                "default": RADIUS_NM_DEFAULT,
                "minimum": RADIUS_NM_MIN,
                "maximum": RADIUS_NM_MAX,
            },
        },
    }
