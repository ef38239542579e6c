"""AIS Fleet plugin runtime.

:class:`AisFleetPlugin` owns the vessel registry, the bus subscription and
both periodic tasks (cloud sync and reporting).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import aiohttp

from aisfleet._constants import VESSEL_CONTEXT_PREFIX
from aisfleet._transport import HttpTransport, Transport
from aisfleet.bus import Bus, Unsubscribe
from aisfleet.clock import Clock, utcnow
from aisfleet.config import AisFleetConfig, settings_schema
from aisfleet.exceptions import AisFleetError
from aisfleet.ingestion.cloud import CloudSyncEngine
from aisfleet.ingestion.delta import DeltaIngestor
from aisfleet.reporting import ReportingEngine
from aisfleet.state.store import VesselRegistry

_logger = logging.getLogger(__name__)


class AisFleetPlugin:
    """Monitors AIS vessels and exchanges them with the AIS Fleet API.

    Usage::

        async with AisFleetPlugin(bus, AisFleetConfig.from_settings(settings)):
            ...

    or call :meth:`start` / :meth:`stop` from the host's plugin lifecycle.
    All work happens on the running event loop; registry methods are
    synchronous so the ingest callback and both periodic tasks never
    interleave inside a mutation.
    """

    id = "aisfleet"
    name = "AIS Fleet"
    description = "Monitors AIS vessels and submits them to an API at configurable intervals"

    def __init__(
        self,
        bus: Bus,
        config: AisFleetConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        clock: Clock = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._bus = bus
        self._config = config or AisFleetConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self.registry = VesselRegistry()
        self.ingestor = DeltaIngestor(self.registry, clock=clock)
        self._unsubscribes: list[Unsubscribe] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._cloud_sync: CloudSyncEngine | None = None
        self._reporting: ReportingEngine | None = None

    @staticmethod
    def schema() -> dict[str, Any]:
        return settings_schema()

    @property
    def config(self) -> AisFleetConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    @property
    def in_flight(self) -> tuple[asyncio.Task[Any], ...]:
        """Cycles still running, including those left to finish by :meth:`stop`."""
        return tuple(self._in_flight)

    @property
    def cloud_sync(self) -> CloudSyncEngine:
        if self._cloud_sync is None:
            raise AisFleetError("Plugin not started")
        return self._cloud_sync

    @property
    def reporting(self) -> ReportingEngine:
        if self._reporting is None:
            raise AisFleetError("Plugin not started")
        return self._reporting

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AisFleetPlugin:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        if self.is_running:
            return
        config = self._config
        _logger.debug(
            "AIS Fleet started - %gmin intervals, %gnm radius",
            config.interval_minutes,
            config.radius_nm,
        )

        transport = self._transport
        if transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = HttpTransport(self._http_session, timeout=config.request_timeout)
            self._transport = transport

        self._cloud_sync = CloudSyncEngine(self.registry, transport, self._bus, config, clock=self._clock)
        self._reporting = ReportingEngine(self.registry, transport, self._bus, config, clock=self._clock)

        subscription = {
            "context": "*",
            "subscribe": [{"path": "*", "period": config.subscription_period_ms}],
        }
        self._unsubscribes.append(self._bus.subscribe(subscription, self._on_delta))

        self._tasks = [
            asyncio.create_task(self._run_periodic("report", self._report_cycle), name="aisfleet-report"),
            asyncio.create_task(self._run_periodic("nearby", self._nearby_cycle), name="aisfleet-nearby"),
        ]

    async def stop(self) -> None:
        """Stop scheduling, release the subscription and drop all vessel state.

        A cycle already awaiting the network is not cancelled: it may complete
        or fail on its own (see :attr:`in_flight`), but its results are
        discarded and no further batches are sent. Closing an owned HTTP
        session makes such a request fail promptly.
        """
        if self._cloud_sync is not None:
            self._cloud_sync.close()
        if self._reporting is not None:
            self._reporting.close()

        # Cancels only the schedulers; in-flight cycles are shielded.
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            try:
                unsubscribe()
            except Exception:
                _logger.debug("Unsubscribe failed", exc_info=True)

        self.registry.clear()
        self.ingestor.reset()

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_delta(self, delta: Mapping[str, Any]) -> None:
        context = delta.get("context") if isinstance(delta, Mapping) else None
        if not isinstance(context, str) or not context.startswith(VESSEL_CONTEXT_PREFIX):
            return
        try:
            self.ingestor.handle_delta(delta)
        except Exception:
            _logger.debug("Delta ingestion failed for %s", context, exc_info=True)

    async def _report_cycle(self) -> None:
        await self.reporting.run_cycle()
        self.ingestor.prune(self.registry.ids())

    async def _nearby_cycle(self) -> None:
        await self.cloud_sync.run_cycle()

    async def _run_periodic(self, label: str, cycle: Callable[[], Awaitable[None]]) -> None:
        interval = self._config.interval_seconds
        while True:
            await self._sleep(interval)
            task = asyncio.ensure_future(cycle())
            self._in_flight.add(task)
            task.add_done_callback(self._forget_in_flight)
            try:
                await asyncio.shield(task)
            except Exception:
                _logger.error("AIS Fleet %s cycle failed", label, exc_info=True)

    def _forget_in_flight(self, task: asyncio.Task[Any]) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        # Retrieve the outcome so a cycle finishing after stop() is not reported as unhandled.
        exc = task.exception()
        if exc is not None and not self._tasks:
            _logger.debug("AIS Fleet cycle failed after shutdown: %s", exc)
