"""
JSON snapshot storage for upload records.

The whole record set is written as one document under the ``uploads`` key.
Writes replace the previous snapshot atomically, so a crash while saving
leaves the prior snapshot in place rather than a truncated file.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Set, Union

import aiofiles
import aiofiles.os

from ...core.domain.uploads import UploadRecord
from ...core.exceptions import PersistenceError
from ...core.interfaces.upload import IPersistenceGateway

logger = logging.getLogger(__name__)


SNAPSHOT_VERSION = 1
SNAPSHOT_KEY = "uploads"


class JsonSnapshotGateway(IPersistenceGateway):
    """Persistence gateway backed by a single JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def save(self, records: List[UploadRecord]) -> None:
        """Write the snapshot; failures are logged and swallowed."""
        document = {
            'version': SNAPSHOT_VERSION,
            SNAPSHOT_KEY: [record.to_dict() for record in records],
        }

        async with self._lock:
            try:
                await self._write(json.dumps(document, indent=2))
            except PersistenceError as e:
                logger.error(f"Error saving upload snapshot: {e}")

    async def load(self) -> List[UploadRecord]:
        """Read the snapshot; a missing or corrupt snapshot reads as empty."""
        async with self._lock:
            try:
                return await self._read()
            except PersistenceError as e:
                logger.error(f"Error loading upload snapshot, starting empty: {e}")
                return []

    async def clear(self) -> None:
        async with self._lock:
            try:
                await aiofiles.os.remove(self._path)
                logger.info(f"Removed upload snapshot {self._path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Error removing upload snapshot: {e}")

    async def _write(self, content: str) -> None:
        temp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, 'w', encoding='utf-8') as f:
                await f.write(content)
                await f.flush()
            os.replace(temp_path, self._path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self._path}: {e}") from e

    async def _read(self) -> List[UploadRecord]:
        if not self._path.exists():
            return []

        try:
            async with aiofiles.open(self._path, 'r', encoding='utf-8') as f:
                content = await f.read()
        except OSError as e:
            raise PersistenceError(f"Cannot read {self._path}: {e}") from e

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Invalid JSON in {self._path}: {e}") from e

        return self._decode(document)

    def _decode(self, document: Any) -> List[UploadRecord]:
        if isinstance(document, list):
            # Snapshots written before versioning were a bare list
            entries = document
        elif isinstance(document, dict):
            version = document.get('version')
            if version != SNAPSHOT_VERSION:
                raise PersistenceError(f"Unsupported snapshot version: {version}")
            entries = document.get(SNAPSHOT_KEY) or []
        else:
            raise PersistenceError(f"Unexpected snapshot type: {type(document).__name__}")

        records: List[UploadRecord] = []
        seen: Set[str] = set()
        for entry in entries:
            try:
                record = UploadRecord.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid upload record in snapshot: {e}")
                continue

            if record.upload_id in seen:
                logger.warning(f"Duplicate upload id in snapshot: {record.upload_id}")
                continue
            seen.add(record.upload_id)
            records.append(record)

        return records
