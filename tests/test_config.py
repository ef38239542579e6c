from __future__ import annotations

import pytest

from aisfleet.config import AisFleetConfig, settings_schema
from aisfleet.exceptions import AisFleetConfigError


def test_defaults() -> None:
    config = AisFleetConfig()

    assert config.interval_minutes == 5
    assert config.radius_nm == 100
    assert config.interval_seconds == 300
    assert config.request_timeout == 30.0
    assert config.batch_size == 100


@pytest.mark.parametrize(
    ("settings", "interval", "radius"),
    [
        ({"intervalMinutes": 0.5, "radiusNauticalMiles": 5}, 1, 10),
        ({"intervalMinutes": 60, "radiusNauticalMiles": 500}, 15, 100),
        ({"intervalMinutes": "7", "radiusNauticalMiles": 25}, 7, 25),
        ({}, 5, 100),
        ({"intervalMinutes": 0, "radiusNauticalMiles": None}, 5, 100),
    ],
)
def test_from_settings_clamps(settings: dict[str, object], interval: float, radius: float) -> None:
    config = AisFleetConfig.from_settings(settings)

    assert config.interval_minutes == interval
    assert config.radius_nm == radius


def test_non_numeric_setting_rejected() -> None:
    with pytest.raises(AisFleetConfigError):
        AisFleetConfig.from_settings({"intervalMinutes": "often"})


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISFLEET_INTERVAL_MINUTES", "3")
    monkeypatch.setenv("AISFLEET_RADIUS_NM", "40")
    monkeypatch.setenv("AISFLEET_API_BASE_URL", "http://localhost:8080/api")

    config = AisFleetConfig.from_env(radius_nm=20)

    assert config.interval_minutes == 3
    assert config.radius_nm == 20
    assert config.api_base_url == "http://localhost:8080/api/"


def test_from_env_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISFLEET_SUBSCRIPTION_PERIOD_MS", "fast")

    with pytest.raises(AisFleetConfigError):
        AisFleetConfig.from_env()


def test_settings_schema_bounds() -> None:
    props = settings_schema()["properties"]

    assert (props["intervalMinutes"]["minimum"], props["intervalMinutes"]["maximum"]) == (1, 15)
    assert (props["radiusNauticalMiles"]["minimum"], props["radiusNauticalMiles"]["maximum"]) == (10, 100)
