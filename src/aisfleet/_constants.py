"""Internal constants shared across the library."""

import math

PLUGIN_ID = "aisfleet"
API_BASE_URL = "https://aisfleet.com/api/"
REPORT_ENDPOINT = "vessels/report/"
NEARBY_ENDPOINT = "vessels/nearby"
USER_AGENT = "SignalK-AISFleet/1.0.0"
REQUEST_TIMEOUT_SECONDS = 30.0

CLOUD_SOURCE_LABEL = "aisfleet-cloud"
MMSI_URN_PREFIX = "urn:mrn:imo:mmsi:"
VESSEL_CONTEXT_PREFIX = "vessels."

# ------------------------------------------------------------------
# Freshness windows
# ------------------------------------------------------------------

STALE_AFTER_SECONDS = 24 * 3600
INGEST_THROTTLE_SECONDS = 2.0
# Cloud records younger than this were most likely stamped "now" during bulk load.
BULK_LOAD_GUARD_SECONDS = 2 * 60
INVALID_ID_LOG_INTERVAL_SECONDS = 60.0

# ------------------------------------------------------------------
# Batching
# ------------------------------------------------------------------

REPORT_BATCH_SIZE = 100
REPORT_BATCH_DELAY_SECONDS = 1.0
CLOUD_PAUSE_EVERY = 50
CLOUD_PAUSE_SECONDS = 0.1

# ------------------------------------------------------------------
# Path filters
# ------------------------------------------------------------------

REPORT_PATH_PREFIXES: tuple[str, ...] = ("navigation.", "design.")
REPORT_EXACT_PATHS: frozenset[str] = frozenset({"name"})

# Static fields (names, dimensions, registrations) are never re-injected:
# the bus expects plain scalars there and rejects the cloud shapes.
REINJECT_PATHS: tuple[str, ...] = (
    "navigation.position",
    "navigation.speedOverGround",
    "navigation.courseOverGroundTrue",
    "navigation.headingTrue",
    "navigation.rateOfTurn",
    "mmsi",
)

# ------------------------------------------------------------------
# Unit conversions (cloud API speaks knots and degrees, the bus SI units)
# ------------------------------------------------------------------

KNOTS_TO_MS = 0.514444


def knots_to_ms(knots: float) -> float:
    """Convert a speed in knots to metres per second."""
    return knots * KNOTS_TO_MS


def degrees_to_radians(degrees: float) -> float:
    """Convert an angle (or angular rate) in degrees to radians."""
    return degrees * math.pi / 180.0
