"""
Configuration management infrastructure.

This module provides configuration models plus loading from YAML/JSON files
and ``RDRIVE_*`` environment variables.
"""

from .models import (
    ApplicationConfig, AuthConfig, DriveConfig, LoggingConfig,
    RetryConfig, ServerConfig, StorageConfig, UploadConfig
)
from .loader import ConfigLoader

__all__ = [
    "ApplicationConfig",
    "AuthConfig",
    "DriveConfig",
    "LoggingConfig",
    "RetryConfig",
    "ServerConfig",
    "StorageConfig",
    "UploadConfig",
    "ConfigLoader",
]
