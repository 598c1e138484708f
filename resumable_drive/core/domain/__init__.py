"""
Domain models for uploads, events, commands and transfer signals.
"""

from .uploads import (
    DEFAULT_CHUNK_SIZE, FileDescriptor, TransferOutcome, UploadRecord,
    UploadStatus, generate_upload_id
)
from .events import Event, EventPriority, UploadEvents
from .commands import CommandAction, CommandResult, UploadCommand
from .signals import StopReason, TransferSignal

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "FileDescriptor",
    "TransferOutcome",
    "UploadRecord",
    "UploadStatus",
    "generate_upload_id",
    "Event",
    "EventPriority",
    "UploadEvents",
    "CommandAction",
    "CommandResult",
    "UploadCommand",
    "StopReason",
    "TransferSignal",
]
