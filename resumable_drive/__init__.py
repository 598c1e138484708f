"""
Resumable Drive - resumable chunked uploads to a remote object-storage API.

This package keeps a durable registry of uploads, transfers files in
fixed-size chunks over resumable sessions, and survives pauses, transient
network failures and process restarts.
"""

__version__ = "0.1.0"

# Public API exports
from .core.interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable
from .core.interfaces.upload import IUploadRegistry, IFileAccessor, ITokenProvider
from .core.domain.uploads import UploadRecord, UploadStatus, FileDescriptor
from .application.startup import ApplicationStartup

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IUploadRegistry",
    "IFileAccessor",
    "ITokenProvider",
    "UploadRecord",
    "UploadStatus",
    "FileDescriptor",
    "ApplicationStartup",
]
