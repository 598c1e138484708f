"""
File accessors used as the byte source of an upload.
"""

from .accessor import LocalFileAccessor, BytesFileAccessor, guess_mime_type

__all__ = [
    "LocalFileAccessor",
    "BytesFileAccessor",
    "guess_mime_type",
]
