"""
File accessors handing byte ranges to the transfer engine.
"""

import mimetypes
import os
from pathlib import Path
from typing import Any, Optional, Union

import aiofiles

from ...core.domain.uploads import FileDescriptor
from ...core.interfaces.upload import IFileAccessor


DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


class LocalFileAccessor(IFileAccessor):
    """
    Reads ranges from a file on disk.

    The file is opened lazily on the first read and kept open until
    ``close`` is called.
    """

    def __init__(self, path: Union[str, Path], mime_type: Optional[str] = None) -> None:
        self._path = Path(path)
        if not self._path.is_file():
            raise FileNotFoundError(f"Not a file: {self._path}")
        self._mime_type = mime_type or guess_mime_type(self._path.name)
        self._handle: Any = None

    @property
    def path(self) -> Path:
        return self._path

    def describe(self) -> FileDescriptor:
        stat = os.stat(self._path)
        return FileDescriptor(
            name=self._path.name,
            size_bytes=stat.st_size,
            mime_type=self._mime_type,
            last_modified=stat.st_mtime,
        )

    async def read(self, start: int, end: int) -> bytes:
        if self._handle is None:
            self._handle = await aiofiles.open(self._path, 'rb')
        await self._handle.seek(start)
        return await self._handle.read(end - start)

    async def close(self) -> None:
        if self._handle is not None:
            await self._handle.close()
            self._handle = None


class BytesFileAccessor(IFileAccessor):
    """Serves ranges from an in-memory buffer."""

    def __init__(self, name: str, data: bytes,
                 mime_type: Optional[str] = None,
                 last_modified: Optional[float] = None) -> None:
        self._name = name
        self._data = data
        self._mime_type = mime_type or guess_mime_type(name)
        self._last_modified = last_modified

    def describe(self) -> FileDescriptor:
        return FileDescriptor(
            name=self._name,
            size_bytes=len(self._data),
            mime_type=self._mime_type,
            last_modified=self._last_modified,
        )

    async def read(self, start: int, end: int) -> bytes:
        return self._data[start:end]
