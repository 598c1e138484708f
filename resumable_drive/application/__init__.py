"""
Application layer wiring components together and serving commands.

This layer builds the upload stack from configuration, manages its
lifecycle, and translates message-style requests into registry calls.
"""

from .startup import ApplicationStartup
from .commands import UploadCommandHandler

__all__ = [
    "ApplicationStartup",
    "UploadCommandHandler",
]
