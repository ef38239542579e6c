"""Local bus delta ingestion.

This module translates bus deltas into registry writes. It runs inside the
bus delivery callback, so it is synchronous and never performs I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from aisfleet._constants import INGEST_THROTTLE_SECONDS, INVALID_ID_LOG_INTERVAL_SECONDS, VESSEL_CONTEXT_PREFIX
from aisfleet.clock import Clock, MonotonicClock, monotonic, utcnow
from aisfleet.ingestion.normalize import source_label, vessel_id_from_context
from aisfleet.models.delta import Delta
from aisfleet.state.events import FieldUpdate
from aisfleet.state.store import VesselRegistry

_logger = logging.getLogger(__name__)


def field_updates_from_delta(delta: Delta) -> list[FieldUpdate]:
    """Flatten a delta into per-path updates.

    Values without a ``value`` key are dropped; ``null`` is kept.
    """
    updates: list[FieldUpdate] = []
    for update in delta.updates:
        label = source_label(update.source)
        for item in update.values:
            if not item.path or not item.has_value:
                continue
            updates.append(
                FieldUpdate(path=item.path, value=item.value, source=label, timestamp=update.timestamp)
            )
    return updates


class DeltaIngestor:
    """Apply bus deltas to a :class:`VesselRegistry` with per-vessel throttling."""

    def __init__(
        self,
        registry: VesselRegistry,
        *,
        clock: Clock = utcnow,
        monotonic_clock: MonotonicClock = monotonic,
        throttle_seconds: float = INGEST_THROTTLE_SECONDS,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._monotonic = monotonic_clock
        self._throttle_seconds = throttle_seconds
        self._last_accepted: dict[str, float] = {}
        self._last_invalid_log: float | None = None

    def __call__(self, payload: Mapping[str, Any]) -> bool:
        return self.handle_delta(payload)

    def handle_delta(self, payload: Mapping[str, Any] | Delta) -> bool:
        """Ingest one delta; returns ``True`` if any field changed."""
        if isinstance(payload, Delta):
            delta = payload
        else:
            context = payload.get("context") if isinstance(payload, Mapping) else None
            if not isinstance(context, str) or not context.startswith(VESSEL_CONTEXT_PREFIX):
                return False
            try:
                delta = Delta.model_validate(payload)
            except ValidationError:
                _logger.debug("Dropping malformed delta for %s", context, exc_info=True)
                return False

        vessel_id = vessel_id_from_context(delta.context)
        if vessel_id is None:
            self._log_invalid(delta.context)
            return False

        now_mono = self._monotonic()
        last = self._last_accepted.get(vessel_id)
        if last is not None and now_mono - last < self._throttle_seconds:
            return False
        # The gate is armed even when nothing changes, to bound the update rate.
        self._last_accepted[vessel_id] = now_mono

        processed_at: datetime = self._clock()
        changed = 0
        for update in field_updates_from_delta(delta):
            if self._registry.upsert_field(
                vessel_id,
                update.path,
                update.value,
                source=update.source,
                timestamp=update.timestamp or processed_at,
                context=delta.context,
            ):
                changed += 1
        return changed > 0

    def prune(self, keep: Iterable[str]) -> None:
        """Drop throttle state for vessels no longer in *keep*."""
        keep_ids = set(keep)
        for vessel_id in list(self._last_accepted):
            if vessel_id not in keep_ids:
                del self._last_accepted[vessel_id]

    def reset(self) -> None:
        self._last_accepted.clear()
        self._last_invalid_log = None

    def _log_invalid(self, context: str | None) -> None:
        now_mono = self._monotonic()
        if self._last_invalid_log is not None and now_mono - self._last_invalid_log < INVALID_ID_LOG_INTERVAL_SECONDS:
            return
        self._last_invalid_log = now_mono
        _logger.debug("Ignoring delta with invalid vessel context %r", context)
