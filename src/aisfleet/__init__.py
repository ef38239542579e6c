"""aisfleet - AIS vessel reconciliation and reporting for Signal K hosts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aisfleet")
except PackageNotFoundError:
    __version__ = "0+local"

from aisfleet.bus import Bus, SelfIdentity, SelfPosition
from aisfleet.config import AisFleetConfig, settings_schema
from aisfleet.exceptions import AisFleetConfigError, AisFleetError, AisFleetTransportError
from aisfleet.ingestion.cloud import CloudSyncEngine, CloudSyncResult
from aisfleet.ingestion.delta import DeltaIngestor
from aisfleet.models import CloudVessel, Delta
from aisfleet.plugin import AisFleetPlugin
from aisfleet.reporting import ReportingEngine, ReportResult
from aisfleet.state.events import Provenance
from aisfleet.state.store import FieldValue, VesselRecord, VesselRegistry

__all__ = [
    "__version__",
    "AisFleetConfig",
    "AisFleetConfigError",
    "AisFleetError",
    "AisFleetPlugin",
    "AisFleetTransportError",
    "Bus",
    "CloudSyncEngine",
    "CloudSyncResult",
    "CloudVessel",
    "Delta",
    "DeltaIngestor",
    "FieldValue",
    "Provenance",
    "ReportResult",
    "ReportingEngine",
    "SelfIdentity",
    "SelfPosition",
    "VesselRecord",
    "VesselRegistry",
    "settings_schema",
]
