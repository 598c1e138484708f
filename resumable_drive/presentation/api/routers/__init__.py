"""
API router modules for different endpoints.
"""

from . import health, uploads, commands

__all__ = [
    "health",
    "uploads",
    "commands",
]
