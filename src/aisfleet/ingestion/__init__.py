"""Ingestion layer.

This package contains the adapters that receive data (local bus deltas, cloud
nearby-vessel queries) and turn it into registry writes.
"""

__all__: list[str] = []
