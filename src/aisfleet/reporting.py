"""Periodic upstream reporting of locally observed vessels.

Each cycle snapshots the registry, evicts dead records, drops cloud-sourced
ones (they must never be echoed back to the cloud) and POSTs the rest in
fixed-size batches. Batches are independent: a failed batch is logged and
the next one is still sent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from aisfleet._constants import (
    REPORT_ENDPOINT,
    REPORT_EXACT_PATHS,
    REPORT_PATH_PREFIXES,
    STALE_AFTER_SECONDS,
)
from aisfleet._redact import redact_for_log
from aisfleet._transport import Transport
from aisfleet.bus import Bus, resolve_self_identity
from aisfleet.clock import Clock, isoformat, utcnow
from aisfleet.config import AisFleetConfig
from aisfleet.exceptions import AisFleetTransportError
from aisfleet.state.policy import is_stale, is_valid_vessel_id
from aisfleet.state.store import VesselRecord, VesselRegistry

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchFailure:
    """Diagnostics kept for the most recent rejected batch."""

    batch_number: int
    category: str
    message: str
    status_code: int | None
    payload: dict[str, Any]


@dataclass(slots=True)
class ReportResult:
    active: int = 0
    evicted: int = 0
    batches: int = 0
    failed_batches: list[int] = field(default_factory=list)
    submitted: int = 0


def is_reportable_path(path: str) -> bool:
    return path in REPORT_EXACT_PATHS or path.startswith(REPORT_PATH_PREFIXES)


def project_record(record: VesselRecord) -> dict[str, Any]:
    """Reduce a record to the upstream shape: value and timestamp per kept path."""
    data = {
        path: {"value": fv.value, "timestamp": isoformat(fv.timestamp)}
        for path, fv in record.fields.items()
        if fv.value is not None and is_reportable_path(path)
    }
    return {
        "id": record.id,
        "context": record.context,
        "lastUpdate": isoformat(record.last_update),
        "data": data,
    }


class ReportingEngine:
    """Snapshot, clean and submit the registry."""

    def __init__(
        self,
        registry: VesselRegistry,
        transport: Transport,
        bus: Bus,
        config: AisFleetConfig,
        *,
        clock: Clock = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_age: timedelta = timedelta(seconds=STALE_AFTER_SECONDS),
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._bus = bus
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._max_age = max_age
        self.last_failure: BatchFailure | None = None
        self._closed = False

    @property
    def report_url(self) -> str:
        return f"{self._config.api_base_url}{REPORT_ENDPOINT}"

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop sending further batches; a batch already posted may still finish."""
        self._closed = True

    def collect_active(self, result: ReportResult | None = None) -> list[VesselRecord]:
        """Evict dead records and return the ones eligible for upstream reporting."""
        now = self._clock()
        active: list[VesselRecord] = []
        for record in self._registry.all():
            if (
                is_stale(now, record.last_update, self._max_age)
                or not is_valid_vessel_id(record.id)
                or not record.fields
            ):
                self._registry.remove(record.id)
                if result is not None:
                    result.evicted += 1
                continue
            if self._registry.is_cloud_provenance(record.id):
                continue
            active.append(record)
        return active

    async def run_cycle(self) -> ReportResult:
        result = ReportResult()
        active = self.collect_active(result)
        result.active = len(active)
        if not active:
            return result

        size = self._config.batch_size
        batches = [active[i : i + size] for i in range(0, len(active), size)]
        result.batches = len(batches)

        for index, batch in enumerate(batches, start=1):
            if self._closed:
                _logger.debug("Reporting closed, skipping batches %d-%d", index, len(batches))
                break
            if await self._submit_batch(batch, index, len(batches)):
                result.submitted += len(batch)
            else:
                result.failed_batches.append(index)
            if index < len(batches):
                await self._sleep(self._config.batch_delay)
        return result

    def build_payload(self, batch: list[VesselRecord]) -> dict[str, Any]:
        identity = resolve_self_identity(self._bus)
        return {
            "timestamp": isoformat(self._clock()),
            "self": identity.as_payload(),
            "vessels": [project_record(record) for record in batch],
        }

    async def _submit_batch(self, batch: list[VesselRecord], number: int, total: int) -> bool:
        payload = self.build_payload(batch)
        _logger.debug("Submitting %d vessels (batch %d/%d)", len(batch), number, total)
        try:
            await self._transport.post_json(self.report_url, payload)
        except AisFleetTransportError as exc:
            if exc.category == "server_error":
                _logger.warning("Submission batch %d server error: %s", number, exc.status_code)
            elif exc.category == "network":
                _logger.warning("Submission batch %d network failure: %s", number, exc)
            else:
                _logger.warning("Submission batch %d rejected: %s", number, exc)
            self._record_failure(number, exc.category, str(exc), exc.status_code, payload)
            return False
        except Exception as exc:
            _logger.warning("Submission batch %d failed: %s", number, exc, exc_info=True)
            self._record_failure(number, "other", str(exc), None, payload)
            return False
        return True

    def _record_failure(
        self,
        number: int,
        category: str,
        message: str,
        status_code: int | None,
        payload: dict[str, Any],
    ) -> None:
        self.last_failure = BatchFailure(
            batch_number=number,
            category=category,
            message=message,
            status_code=status_code,
            payload=payload,
        )
        _logger.debug("Rejected batch %d payload: %s", number, redact_for_log(payload))
