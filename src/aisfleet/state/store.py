"""In-memory vessel registry.

This is the only component allowed to mutate reconciled vessel state. All
methods are synchronous, so on a single event loop no two mutations can
interleave; callers on other threads must serialise access themselves.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from aisfleet._constants import STALE_AFTER_SECONDS, VESSEL_CONTEXT_PREFIX
from aisfleet.state.events import Provenance
from aisfleet.state.policy import is_stale, is_valid_vessel_id, values_equal


class FieldValue(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Any = None
    source: str | None = None
    timestamp: datetime


class VesselRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    context: str
    last_update: datetime
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    provenance: Provenance = Provenance.LOCAL


class VesselRegistry:
    """Mapping from vessel identifier to reconciled :class:`VesselRecord`.

    The registry also tracks which identifiers currently hold cloud-origin
    data. That marker set is kept apart from the record's own ``provenance``
    tag so loop prevention survives a record being rebuilt.
    """

    def __init__(self) -> None:
        self._vessels: dict[str, VesselRecord] = {}
        self._cloud_ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._vessels)

    def __contains__(self, vessel_id: object) -> bool:
        return vessel_id in self._vessels

    def ids(self) -> list[str]:
        return list(self._vessels)

    def upsert_field(
        self,
        vessel_id: str,
        path: str,
        value: Any,
        *,
        source: str | None,
        timestamp: datetime,
        context: str | None = None,
    ) -> bool:
        """Write one field, creating the record if needed.

        Returns ``True`` only when the registry changed. Invalid identifiers
        and values structurally equal to the current one are no-ops.
        """
        if not is_valid_vessel_id(vessel_id):
            return False

        record = self._vessels.get(vessel_id)
        if record is None:
            record = VesselRecord(
                id=vessel_id,
                context=context or f"{VESSEL_CONTEXT_PREFIX}{vessel_id}",
                last_update=timestamp,
            )
            self._vessels[vessel_id] = record
        else:
            current = record.fields.get(path)
            if current is not None and values_equal(current.value, value):
                return False

        record.fields[path] = FieldValue(value=copy.deepcopy(value), source=source, timestamp=timestamp)
        # Local writes never move last_update backwards.
        if timestamp > record.last_update:
            record.last_update = timestamp
        return True

    def put(self, record: VesselRecord) -> bool:
        """Replace a whole record (used by cloud merges).

        Unlike :meth:`upsert_field` this may lower ``last_update`` to the
        authoritative timestamp carried by the incoming record.
        """
        if not is_valid_vessel_id(record.id):
            return False
        self._vessels[record.id] = record.model_copy(deep=True)
        return True

    def get(self, vessel_id: str) -> VesselRecord | None:
        record = self._vessels.get(vessel_id)
        return record.model_copy(deep=True) if record is not None else None

    def get_field(self, vessel_id: str, path: str) -> FieldValue | None:
        record = self._vessels.get(vessel_id)
        if record is None:
            return None
        field = record.fields.get(path)
        return field.model_copy(deep=True) if field is not None else None

    def all(self) -> list[VesselRecord]:
        """Snapshot of every record; later mutations do not affect it."""
        return [record.model_copy(deep=True) for record in self._vessels.values()]

    def remove(self, vessel_id: str) -> bool:
        self._cloud_ids.discard(vessel_id)
        return self._vessels.pop(vessel_id, None) is not None

    def set_provenance(self, vessel_id: str, tag: Provenance) -> None:
        if tag == Provenance.CLOUD:
            self._cloud_ids.add(vessel_id)
        else:
            self._cloud_ids.discard(vessel_id)
        record = self._vessels.get(vessel_id)
        if record is not None:
            record.provenance = tag

    def is_cloud_provenance(self, vessel_id: str) -> bool:
        if vessel_id in self._cloud_ids:
            return True
        record = self._vessels.get(vessel_id)
        return record is not None and record.provenance == Provenance.CLOUD

    def evict_stale(
        self,
        now: datetime,
        max_age: timedelta = timedelta(seconds=STALE_AFTER_SECONDS),
    ) -> list[str]:
        """Remove stale records and records with invalid identifiers."""
        evicted: list[str] = []
        for vessel_id, record in list(self._vessels.items()):
            if not is_valid_vessel_id(vessel_id) or is_stale(now, record.last_update, max_age):
                self.remove(vessel_id)
                evicted.append(vessel_id)
        return evicted

    def clear(self) -> None:
        self._vessels.clear()
        self._cloud_ids.clear()
