"""
Upload domain models.

This module defines the upload record, the only entity that is persisted
between runs, together with the status values it moves through.
"""

import random
import string
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5 MiB


class UploadStatus(Enum):
    """Lifecycle states of a single upload."""
    INITIALIZING = "initializing"
    UPLOADING = "uploading"
    PAUSED = "paused"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no transition may leave this state."""
        return self in (UploadStatus.COMPLETED, UploadStatus.CANCELLED)


class TransferOutcome(Enum):
    """Result of one run of the chunk transfer loop."""
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileDescriptor:
    """Immutable snapshot of the source file taken at creation time."""

    name: str
    size_bytes: int
    mime_type: str = "application/octet-stream"
    last_modified: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("File name cannot be empty")
        if self.size_bytes < 0:
            raise ValueError("File size cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'size': self.size_bytes,
            'type': self.mime_type,
            'lastModified': self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileDescriptor':
        return cls(
            name=data['name'],
            size_bytes=int(data['size']),
            mime_type=data.get('type') or "application/octet-stream",
            last_modified=data.get('lastModified'),
        )


def generate_upload_id() -> str:
    """Generate an id of the form ``upload_<epoch-ms>_<9 base36 chars>``."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = ''.join(random.choice(alphabet) for _ in range(9))
    return f"upload_{int(time.time() * 1000)}_{suffix}"


@dataclass
class UploadRecord:
    """
    Persisted state of one resumable upload.

    Records are mutated only by the state machine and transfer engine that
    own them; everything handed out to callers is a copy.
    """

    upload_id: str
    file: FileDescriptor
    status: UploadStatus = UploadStatus.INITIALIZING
    uploaded_bytes: int = 0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    folder_id: Optional[str] = None
    session_uri: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    updated_at: float = field(default_factory=time.time)
    last_error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        if not (0 <= self.uploaded_bytes <= self.file.size_bytes):
            raise ValueError(
                f"Uploaded bytes {self.uploaded_bytes} outside 0..{self.file.size_bytes}")

    @property
    def size_bytes(self) -> int:
        return self.file.size_bytes

    @property
    def progress_percent(self) -> float:
        """Upload progress, recomputed from the byte counters."""
        if self.file.size_bytes == 0:
            return 100.0 if self.status == UploadStatus.COMPLETED else 0.0
        return (self.uploaded_bytes / self.file.size_bytes) * 100.0

    @property
    def is_active(self) -> bool:
        """Check if a transfer may currently be running for this record."""
        return self.status in (UploadStatus.INITIALIZING, UploadStatus.UPLOADING)

    def copy(self) -> 'UploadRecord':
        return replace(self)

    def touch(self) -> None:
        self.updated_at = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        return {
            'id': self.upload_id,
            'file': self.file.to_dict(),
            'status': self.status.value,
            'uploadedBytes': self.uploaded_bytes,
            'progress': self.progress_percent,
            'chunkSize': self.chunk_size,
            'folderId': self.folder_id,
            'sessionUri': self.session_uri,
            'startTime': self.started_at,
            'endTime': self.completed_at,
            'updatedAt': self.updated_at,
            'error': self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UploadRecord':
        """
        Create a record from its persisted dictionary shape.

        The stored ``progress`` value is ignored; it is always derived.
        """
        started_at = data.get('startTime') or time.time()
        return cls(
            upload_id=data['id'],
            file=FileDescriptor.from_dict(data['file']),
            status=UploadStatus(data['status']),
            uploaded_bytes=int(data.get('uploadedBytes', 0)),
            chunk_size=int(data.get('chunkSize', DEFAULT_CHUNK_SIZE)),
            folder_id=data.get('folderId'),
            session_uri=data.get('sessionUri'),
            started_at=started_at,
            completed_at=data.get('endTime'),
            updated_at=data.get('updatedAt') or started_at,
            last_error=data.get('error'),
        )
