from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import pytest

from aisfleet.config import AisFleetConfig
from aisfleet.exceptions import AisFleetTransportError
from aisfleet.reporting import ReportingEngine, project_record
from aisfleet.state.events import Provenance
from aisfleet.state.store import FieldValue, VesselRecord, VesselRegistry


def _vessel_id(index: int) -> str:
    return f"urn:mrn:imo:mmsi:{230000000 + index}"


def _populate(registry: VesselRegistry, count: int, clock: Any) -> None:
    for index in range(count):
        registry.upsert_field(
            _vessel_id(index),
            "navigation.speedOverGround",
            float(index),
            source="ais",
            timestamp=clock() - timedelta(minutes=1),
        )


def _engine(registry: VesselRegistry, transport: Any, bus: Any, clock: Any, sleep: Any) -> ReportingEngine:
    return ReportingEngine(registry, transport, bus, AisFleetConfig(), clock=clock, sleep=sleep)


def test_projection_keeps_navigation_design_and_name_only(clock: Any) -> None:
    registry = VesselRegistry()
    vessel_id = _vessel_id(1)
    for path, value in (
        ("name", "ALPHA"),
        ("navigation.position", {"latitude": 1.0, "longitude": 2.0}),
        ("design.length", {"overall": 12.0}),
        ("communication.callsignVhf", "OJAB"),
        ("sensors.ais.class", "A"),
        ("navigation.destination", None),
    ):
        registry.upsert_field(vessel_id, path, value, source="ais", timestamp=clock())
    record = registry.get(vessel_id)
    assert record is not None

    projected = project_record(record)

    assert projected["id"] == vessel_id
    assert projected["context"] == f"vessels.{vessel_id}"
    assert projected["lastUpdate"] == "2026-01-01T12:00:00.000Z"
    assert set(projected["data"]) == {"name", "navigation.position", "design.length"}
    assert projected["data"]["name"] == {"value": "ALPHA", "timestamp": "2026-01-01T12:00:00.000Z"}


@pytest.mark.asyncio
async def test_payload_shape_and_headers_target(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 2, clock)

    result = await _engine(registry, transport, bus, clock, sleep).run_cycle()

    assert result.submitted == 2
    url, payload = transport.posts[0]
    assert url == "https://aisfleet.com/api/vessels/report/"
    assert payload["timestamp"] == "2026-01-01T12:00:00.000Z"
    assert payload["self"] == {"uuid": "urn:mrn:imo:mmsi:244000001", "mmsi": "244000001"}
    assert [v["id"] for v in payload["vessels"]] == [_vessel_id(0), _vessel_id(1)]
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_self_mmsi_parsed_from_uuid_when_lookup_fails(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 1, clock)
    bus.paths.pop("mmsi")

    await _engine(registry, transport, bus, clock, sleep).run_cycle()

    assert transport.posts[0][1]["self"]["mmsi"] == "244000001"


@pytest.mark.asyncio
async def test_self_block_present_without_identity(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 1, clock)
    bus.paths.pop("mmsi")
    bus.self_id = None

    await _engine(registry, transport, bus, clock, sleep).run_cycle()

    assert transport.posts[0][1]["self"] == {"uuid": None, "mmsi": None}


@pytest.mark.asyncio
async def test_cloud_records_never_reported(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 3, clock)
    registry.set_provenance(_vessel_id(0), Provenance.CLOUD)
    registry.put(
        VesselRecord(
            id=_vessel_id(9),
            context=f"vessels.{_vessel_id(9)}",
            last_update=clock(),
            fields={"name": FieldValue(value="CLOUD", source="aisfleet-cloud", timestamp=clock())},
            provenance=Provenance.CLOUD,
        )
    )

    result = await _engine(registry, transport, bus, clock, sleep).run_cycle()

    reported = [v["id"] for v in transport.posts[0][1]["vessels"]]
    assert reported == [_vessel_id(1), _vessel_id(2)]
    assert result.active == 2
    # Cloud records are excluded, not evicted.
    assert _vessel_id(0) in registry
    assert _vessel_id(9) in registry


@pytest.mark.asyncio
async def test_stale_and_empty_records_are_evicted(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 1, clock)
    stale = _vessel_id(5)
    empty = _vessel_id(6)
    registry.upsert_field(stale, "name", "OLD", source="ais", timestamp=clock() - timedelta(hours=25))
    registry.put(VesselRecord(id=empty, context=f"vessels.{empty}", last_update=clock()))

    result = await _engine(registry, transport, bus, clock, sleep).run_cycle()

    assert result.evicted == 2
    assert stale not in registry
    assert empty not in registry
    assert [v["id"] for v in transport.posts[0][1]["vessels"]] == [_vessel_id(0)]


@pytest.mark.asyncio
async def test_nothing_submitted_when_no_active_vessels(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    result = await _engine(VesselRegistry(), transport, bus, clock, sleep).run_cycle()

    assert result.batches == 0
    assert transport.posts == []


@pytest.mark.asyncio
async def test_batches_of_one_hundred_with_delay_between(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 250, clock)

    result = await _engine(registry, transport, bus, clock, sleep).run_cycle()

    assert result.batches == 3
    assert [len(p["vessels"]) for _, p in transport.posts] == [100, 100, 50]
    assert sleep.calls == [1.0, 1.0]


@pytest.mark.asyncio
async def test_failed_batch_does_not_halt_cycle(
    bus: Any,
    transport: Any,
    clock: Any,
    sleep: Any,
    caplog: pytest.LogCaptureFixture,
) -> None:
    registry = VesselRegistry()
    _populate(registry, 150, clock)
    transport.post_errors[2] = AisFleetTransportError("HTTP 502", status_code=502)
    engine = _engine(registry, transport, bus, clock, sleep)

    with caplog.at_level(logging.DEBUG, logger="aisfleet.reporting"):
        result = await engine.run_cycle()

    assert len(transport.posts) == 2
    assert result.submitted == 100
    assert result.failed_batches == [2]
    assert "batch 2 server error" in caplog.text
    assert engine.last_failure is not None
    assert engine.last_failure.category == "server_error"
    assert len(engine.last_failure.payload["vessels"]) == 50


@pytest.mark.asyncio
async def test_middle_batch_network_failure_continues(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 250, clock)
    transport.post_errors[2] = AisFleetTransportError("timed out", timed_out=True)
    engine = _engine(registry, transport, bus, clock, sleep)

    result = await engine.run_cycle()

    assert len(transport.posts) == 3
    assert result.submitted == 150
    assert result.failed_batches == [2]
    assert engine.last_failure is not None
    assert engine.last_failure.category == "network"


@pytest.mark.asyncio
async def test_unexpected_batch_error_is_categorized_other(bus: Any, transport: Any, clock: Any, sleep: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 1, clock)
    transport.post_errors[1] = RuntimeError("encoder exploded")
    engine = _engine(registry, transport, bus, clock, sleep)

    result = await engine.run_cycle()

    assert result.failed_batches == [1]
    assert engine.last_failure is not None
    assert engine.last_failure.category == "other"


@pytest.mark.asyncio
async def test_closed_engine_sends_no_further_batches(bus: Any, transport: Any, clock: Any) -> None:
    registry = VesselRegistry()
    _populate(registry, 250, clock)

    async def close_during_delay(seconds: float) -> None:
        engine.close()

    engine = ReportingEngine(registry, transport, bus, AisFleetConfig(), clock=clock, sleep=close_during_delay)
    result = await engine.run_cycle()

    assert engine.closed
    assert len(transport.posts) == 1
    assert result.batches == 3
    assert result.submitted == 100
    assert result.failed_batches == []
