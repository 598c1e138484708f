"""
Durable snapshot storage for upload records.
"""

from .snapshot import JsonSnapshotGateway, SNAPSHOT_VERSION

__all__ = [
    "JsonSnapshotGateway",
    "SNAPSHOT_VERSION",
]
