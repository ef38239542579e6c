"""Typed wire models for aisfleet."""

from aisfleet.models.cloud import CloudNavigation, CloudPosition, CloudVessel
from aisfleet.models.delta import Delta, DeltaUpdate, PathValue

__all__ = [
    "CloudNavigation",
    "CloudPosition",
    "CloudVessel",
    "Delta",
    "DeltaUpdate",
    "PathValue",
]
