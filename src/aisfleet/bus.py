"""Host data bus boundary.

The host (a Signal K server) owns delta delivery, the self vessel's data and
message injection. aisfleet only talks to it through :class:`Bus`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from aisfleet.ingestion.normalize import mmsi_from_urn, safe_float, safe_str

_logger = logging.getLogger(__name__)

DeltaCallback = Callable[[Mapping[str, Any]], None]
Unsubscribe = Callable[[], None]


class Bus(Protocol):
    """Structural interface of the host data bus.

    Having a protocol here makes it easy to pass test doubles while the
    host adapter stays outside this package.
    """

    self_id: str | None

    def get_self_path(self, path: str) -> Any:
        """Return the self vessel's value at *path* (may raise when unknown)."""
        ...

    def handle_message(self, provider_id: str, delta: Mapping[str, Any]) -> None:
        """Inject a delta onto the bus as if received from *provider_id*."""
        ...

    def subscribe(self, subscription: Mapping[str, Any], on_delta: DeltaCallback) -> Unsubscribe:
        """Register *on_delta* for matching deltas; returns a callable that unsubscribes."""
        ...


@dataclass(frozen=True, slots=True)
class SelfIdentity:
    uuid: str | None
    mmsi: str | None

    @property
    def is_known(self) -> bool:
        return bool(self.uuid or self.mmsi)

    def as_payload(self) -> dict[str, str | None]:
        return {"uuid": self.uuid, "mmsi": self.mmsi}


@dataclass(frozen=True, slots=True)
class SelfPosition:
    latitude: float
    longitude: float


def _unwrap(value: Any) -> Any:
    # Full-model lookups return {"value": ..., "timestamp": ...}; plain ones return the value.
    if isinstance(value, Mapping) and "value" in value:
        return value["value"]
    return value


def resolve_self_identity(bus: Bus) -> SelfIdentity:
    """Best-effort self UUID and MMSI.

    The MMSI is read from the bus; if that lookup fails or is empty it is
    parsed out of a ``...mmsi:<number>`` self identifier.
    """
    uuid = safe_str(getattr(bus, "self_id", None))
    mmsi: str | None = None
    try:
        mmsi = safe_str(_unwrap(bus.get_self_path("mmsi")))
    except Exception:
        _logger.debug("Self MMSI lookup failed; deriving from self id", exc_info=True)
    if mmsi is None:
        mmsi = mmsi_from_urn(uuid)
    return SelfIdentity(uuid=uuid, mmsi=mmsi)


def resolve_self_position(bus: Bus) -> SelfPosition | None:
    try:
        position = _unwrap(bus.get_self_path("navigation.position"))
    except Exception:
        _logger.debug("Self position lookup failed", exc_info=True)
        return None
    if not isinstance(position, Mapping):
        return None
    latitude = safe_float(position.get("latitude"))
    longitude = safe_float(position.get("longitude"))
    if latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return SelfPosition(latitude=latitude, longitude=longitude)
