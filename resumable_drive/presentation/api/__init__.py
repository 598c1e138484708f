"""
REST API components for the presentation layer.
"""

from .app import create_app
from .dependencies import get_startup, get_config, get_registry, get_notification_bus

__all__ = [
    "create_app",
    "get_startup",
    "get_config",
    "get_registry",
    "get_notification_bus",
]
