"""
Token providers for the remote storage API.
"""

from .tokens import (
    StaticTokenProvider, FileTokenProvider, CommandTokenProvider, create_token_provider
)

__all__ = [
    "StaticTokenProvider",
    "FileTokenProvider",
    "CommandTokenProvider",
    "create_token_provider",
]
