"""
Presentation layer serving the upload commands over HTTP and WebSocket.
"""

from .api.app import create_app

__all__ = [
    "create_app",
]
