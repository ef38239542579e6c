"""Cloud nearby-vessels ingestion.

This module owns the fetch-merge-inject cycle: query the AIS Fleet API for
vessels around the self position, merge the ones that pass the precedence
policy into the registry, and re-publish their dynamic fields on the bus.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from aisfleet._constants import (
    CLOUD_PAUSE_EVERY,
    CLOUD_PAUSE_SECONDS,
    CLOUD_SOURCE_LABEL,
    NEARBY_ENDPOINT,
    REINJECT_PATHS,
    degrees_to_radians,
    knots_to_ms,
)
from aisfleet._transport import Transport
from aisfleet.bus import Bus, resolve_self_identity, resolve_self_position
from aisfleet.clock import Clock, isoformat, utcnow
from aisfleet.config import AisFleetConfig
from aisfleet.exceptions import AisFleetTransportError
from aisfleet.ingestion.normalize import context_for, usable_mmsi, vessel_id_for_mmsi
from aisfleet.models.cloud import CloudVessel
from aisfleet.state.events import Provenance
from aisfleet.state.policy import should_accept_cloud_record
from aisfleet.state.store import FieldValue, VesselRecord, VesselRegistry

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CloudSyncResult:
    """Counters for one nearby-vessels cycle."""

    received: int = 0
    accepted: int = 0
    updated: int = 0
    local_preferred: int = 0
    skipped: int = 0
    injected: int = 0


def cloud_vessel_to_record(vessel: CloudVessel, *, now: datetime) -> VesselRecord:
    """Convert a cloud vessel to the registry schema.

    Speeds are converted from knots to m/s and angles (course, heading,
    rate of turn) from degrees to radians.
    """
    if vessel.mmsi is None:
        raise ValueError("cloud vessel has no usable MMSI")

    vessel_id = vessel_id_for_mmsi(vessel.mmsi)
    fields: dict[str, FieldValue] = {}

    def put(path: str, value: Any, timestamp: datetime) -> None:
        fields[path] = FieldValue(value=value, source=CLOUD_SOURCE_LABEL, timestamp=timestamp)

    put("mmsi", vessel.mmsi, now)
    if vessel.name:
        put("name", vessel.name, now)
    if vessel.call_sign:
        put("communication.callsignVhf", vessel.call_sign, now)
    if vessel.imo_number:
        put("registrations.imo", vessel.imo_number, now)
    if vessel.design_length:
        put("design.length", {"overall": vessel.design_length}, now)
    if vessel.design_beam:
        put("design.beam", vessel.design_beam, now)
    if vessel.design_draft:
        put("design.draft", {"maximum": vessel.design_draft}, now)

    position = vessel.last_position
    if position is not None:
        put(
            "navigation.position",
            {"latitude": position.latitude, "longitude": position.longitude},
            position.timestamp or now,
        )

    nav = vessel.latest_navigation
    if nav is not None:
        nav_ts = nav.timestamp or now
        if nav.course_over_ground is not None:
            put("navigation.courseOverGroundTrue", degrees_to_radians(nav.course_over_ground), nav_ts)
        if nav.speed_over_ground is not None:
            put("navigation.speedOverGround", knots_to_ms(nav.speed_over_ground), nav_ts)
        if nav.heading is not None:
            put("navigation.headingTrue", degrees_to_radians(nav.heading), nav_ts)
        if nav.rate_of_turn is not None:
            put("navigation.rateOfTurn", degrees_to_radians(nav.rate_of_turn), nav_ts)
        if nav.navigation_status is not None:
            put("navigation.state", nav.navigation_status, nav_ts)

    return VesselRecord(
        id=vessel_id,
        context=context_for(vessel_id),
        last_update=vessel.data_timestamp or now,
        fields=fields,
        provenance=Provenance.CLOUD,
    )


def build_reinjection_delta(record: VesselRecord, *, now: datetime) -> dict[str, Any] | None:
    """Build a bus delta carrying only the dynamic navigation fields of *record*."""
    values = [
        {"path": path, "value": record.fields[path].value}
        for path in REINJECT_PATHS
        if path in record.fields and record.fields[path].value is not None
    ]
    if not values:
        return None
    return {
        "context": record.context,
        "updates": [
            {
                "source": {"label": CLOUD_SOURCE_LABEL},
                "timestamp": isoformat(now),
                "values": values,
            }
        ],
    }


class CloudSyncEngine:
    """Periodic nearby-vessels fetch and merge."""

    def __init__(
        self,
        registry: VesselRegistry,
        transport: Transport,
        bus: Bus,
        config: AisFleetConfig,
        *,
        clock: Clock = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._bus = bus
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._closed = False

    @property
    def nearby_url(self) -> str:
        return f"{self._config.api_base_url}{NEARBY_ENDPOINT}"

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Discard the outcome of any cycle still awaiting the network."""
        self._closed = True

    async def run_cycle(self) -> CloudSyncResult:
        result = CloudSyncResult()

        evicted = self._registry.evict_stale(self._clock())
        if evicted:
            _logger.debug("Evicted %d stale vessels", len(evicted))

        position = resolve_self_position(self._bus)
        if position is None:
            return result

        identity = resolve_self_identity(self._bus)
        if not identity.is_known:
            return result

        params: dict[str, str] = {
            "lat": str(position.latitude),
            "lng": str(position.longitude),
            "radius": f"{self._config.radius_nm:g}",
        }
        if identity.mmsi:
            params["mmsi"] = identity.mmsi
        if identity.uuid:
            params["uuid"] = identity.uuid

        _logger.debug("Fetching nearby vessels (radius: %snm)", params["radius"])
        try:
            response = await self._transport.get_json(self.nearby_url, params)
        except AisFleetTransportError as exc:
            if exc.status_code == 403:
                _logger.debug("Nearby vessels: access denied")
            elif exc.category == "server_error":
                _logger.debug("Nearby vessels: server error (%s)", exc.status_code)
            elif exc.category == "client_error":
                _logger.debug("Nearby vessels: client error (%s)", exc.status_code)
            else:
                _logger.debug("Nearby vessels failed (%s): %s", exc.category, exc)
            return result

        if self._closed:
            _logger.debug("Discarding nearby vessels response received after shutdown")
            return result

        vessels = response.get("vessels") if isinstance(response, dict) else None
        if not isinstance(vessels, list):
            _logger.debug("Nearby vessels response carried no vessel list")
            return result

        result.received = len(vessels)
        _logger.debug("Retrieved %d cloud vessels", result.received)
        await self._merge(vessels, result)
        return result

    async def _merge(self, vessels: list[Any], result: CloudSyncResult) -> None:
        for raw in vessels:
            if self._closed:
                break
            if not isinstance(raw, dict) or usable_mmsi(raw.get("mmsi")) is None:
                result.skipped += 1
                continue
            try:
                vessel = CloudVessel.model_validate(raw)
            except ValidationError:
                _logger.debug("Skipping malformed cloud vessel %r", raw.get("mmsi"), exc_info=True)
                result.skipped += 1
                continue

            now = self._clock()
            vessel_id = vessel_id_for_mmsi(vessel.mmsi or "")
            existing = self._registry.get(vessel_id)
            existing_is_cloud = self._registry.is_cloud_provenance(vessel_id)

            if existing is not None and not existing_is_cloud:
                result.local_preferred += 1
                continue

            if not should_accept_cloud_record(
                existing_last_update=existing.last_update if existing is not None else None,
                existing_is_cloud=existing_is_cloud,
                incoming_timestamp=vessel.data_timestamp or now,
                now=now,
            ):
                result.skipped += 1
                continue

            record = cloud_vessel_to_record(vessel, now=now)
            if not self._registry.put(record):
                result.skipped += 1
                continue
            self._registry.set_provenance(vessel_id, Provenance.CLOUD)

            result.accepted += 1
            if existing is not None:
                result.updated += 1

            if self._inject(record, now):
                result.injected += 1

            if result.accepted % CLOUD_PAUSE_EVERY == 0:
                await self._sleep(CLOUD_PAUSE_SECONDS)

        if result.received:
            _logger.debug(
                "Processed %d cloud vessels (%d accepted, %d local preferred, %d skipped)",
                result.received,
                result.accepted,
                result.local_preferred,
                result.skipped,
            )

    def _inject(self, record: VesselRecord, now: datetime) -> bool:
        delta = build_reinjection_delta(record, now=now)
        if delta is None:
            return False
        try:
            self._bus.handle_message(self._config.plugin_id, delta)
        except Exception as exc:
            _logger.debug("Failed to inject vessel %s (%s): %s", record.id, type(exc).__name__, exc)
            return False
        return True
