"""
Core interfaces defining the contracts between upload components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .messaging import INotificationBus
from .upload import (
    IFileAccessor, IPersistenceGateway, ISessionNegotiator, ITokenProvider,
    ITransferEngine, IUploadRegistry, ProgressCallback
)

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "INotificationBus",
    "IFileAccessor",
    "IPersistenceGateway",
    "ISessionNegotiator",
    "ITokenProvider",
    "ITransferEngine",
    "IUploadRegistry",
    "ProgressCallback",
]
