"""State/store layer.

This package is the single source of truth for how locally observed telemetry
and cloud-sourced vessel records are merged into one registry keyed by vessel
identifier.
"""
