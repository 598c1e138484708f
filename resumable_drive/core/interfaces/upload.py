"""
Upload service interfaces.

These contracts separate the upload lifecycle from the remote API, the
snapshot storage, the token source and the file being read.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..domain.signals import TransferSignal
from ..domain.uploads import FileDescriptor, TransferOutcome, UploadRecord
from .lifecycle import IStartable, IStoppable, IHealthCheckable


ProgressCallback = Callable[[UploadRecord], Awaitable[None]]


class IFileAccessor(ABC):
    """Random access to the bytes of the file being uploaded."""

    @abstractmethod
    def describe(self) -> FileDescriptor:
        """Take a descriptor snapshot of the file."""
        pass

    @abstractmethod
    async def read(self, start: int, end: int) -> bytes:
        """Read the byte range ``[start, end)``."""
        pass

    async def close(self) -> None:
        """Release any handle held by the accessor."""
        return None


class ITokenProvider(ABC):
    """Source of bearer tokens for the remote API."""

    @abstractmethod
    async def get_token(self, interactive: bool = False) -> Optional[str]:
        """
        Obtain an access token.

        Args:
            interactive: Whether the provider may prompt the user

        Returns:
            Token string, or None when no token can be obtained
        """
        pass


class ISessionNegotiator(ABC):
    """Opens and closes resumable sessions on the remote API."""

    @abstractmethod
    async def open_session(self, descriptor: FileDescriptor,
                           folder_id: Optional[str], token: str) -> str:
        """
        Open a resumable session.

        Returns:
            Session locator URI

        Raises:
            NegotiationError: On any non-success response
        """
        pass

    @abstractmethod
    async def close_session(self, session_uri: str, token: Optional[str]) -> None:
        """Delete a session; failures are logged, never raised."""
        pass


class ITransferEngine(ABC):
    """Drives the byte-range chunk loop for one upload."""

    @abstractmethod
    async def run(self, record: UploadRecord, file_accessor: IFileAccessor,
                  token: str, signal: TransferSignal,
                  progress_callback: Optional[ProgressCallback] = None) -> TransferOutcome:
        """
        Send the remaining chunks of ``record``.

        Returns:
            COMPLETED, or PAUSED / CANCELLED when stopped through ``signal``
        """
        pass


class IPersistenceGateway(ABC):
    """Durable snapshot store for upload records."""

    @abstractmethod
    async def save(self, records: List[UploadRecord]) -> None:
        """Overwrite the snapshot with ``records``; failures are swallowed."""
        pass

    @abstractmethod
    async def load(self) -> List[UploadRecord]:
        """Read the last snapshot; empty when missing or unreadable."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove the snapshot entirely."""
        pass


class IUploadRegistry(IStartable, IStoppable, IHealthCheckable):
    """Owner of all upload records and their in-flight transfers."""

    @abstractmethod
    async def start_upload(self, file_accessor: IFileAccessor,
                           folder_id: Optional[str] = None,
                           chunk_size: Optional[int] = None) -> str:
        """Create a record and begin transferring it; returns the id."""
        pass

    @abstractmethod
    async def pause_upload(self, upload_id: str) -> bool:
        """Pause an uploading record."""
        pass

    @abstractmethod
    async def resume_upload(self, upload_id: str, file_accessor: IFileAccessor) -> bool:
        """Resume a paused or interrupted record with a fresh accessor."""
        pass

    @abstractmethod
    async def cancel_upload(self, upload_id: str) -> bool:
        """Cancel and remove a record in any state."""
        pass

    @abstractmethod
    def list_uploads(self) -> List[UploadRecord]:
        """Return copies of all records."""
        pass

    @abstractmethod
    def get_upload(self, upload_id: str) -> Optional[UploadRecord]:
        """Return a copy of one record, or None."""
        pass

    @abstractmethod
    async def clear_finished(self) -> int:
        """Remove completed and failed records; returns how many."""
        pass

    @abstractmethod
    async def clear_all(self) -> int:
        """Cancel every record and delete the snapshot; returns how many."""
        pass

    @abstractmethod
    async def wait_for(self, upload_id: str) -> Optional[UploadRecord]:
        """Wait for the in-flight transfer of a record to settle."""
        pass

    @abstractmethod
    def get_statistics(self) -> Dict[str, Any]:
        """Counts of records per status."""
        pass
