"""
Upload services for the resumable upload engine.

This module provides session negotiation, the chunk transfer loop and the
registry that owns every upload record.
"""

from .engine import ChunkTransferEngine, RetryPolicy
from .negotiator import SessionNegotiator
from .registry import UploadRegistry

__all__ = [
    "ChunkTransferEngine",
    "RetryPolicy",
    "SessionNegotiator",
    "UploadRegistry",
]
