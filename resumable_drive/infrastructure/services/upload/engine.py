"""
Chunk transfer engine for resumable sessions.

Sends the byte ranges of one upload strictly in order, one request at a
time, against an already opened session. Progress is written to the record
in place; persisting and notifying is left to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ....core.domain.signals import StopReason, TransferSignal
from ....core.domain.uploads import TransferOutcome, UploadRecord
from ....core.exceptions import (
    FileMismatchError, SessionExpiredError, TransientTransferError
)
from ....core.interfaces.upload import IFileAccessor, ITransferEngine, ProgressCallback

logger = logging.getLogger(__name__)


RESUME_INCOMPLETE = 308
SUCCESS_STATUSES = frozenset({200, 201})
SESSION_GONE_STATUSES = frozenset({404, 410})


@dataclass
class RetryPolicy:
    """
    Delay schedule for retrying a failed byte range.

    The defaults retry forever with a fixed two second delay. A
    ``backoff_factor`` above 1 turns it into capped exponential backoff and
    ``max_attempts`` bounds the number of retries.
    """

    initial_delay: float = 2.0
    backoff_factor: float = 1.0
    max_delay: float = 60.0
    max_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        if self.initial_delay < 0:
            raise ValueError("Retry delay cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("Backoff factor must be at least 1")
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError("Max attempts cannot be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = self.initial_delay * (self.backoff_factor ** (attempt - 1))
        return min(delay, max(self.max_delay, self.initial_delay))

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt > self.max_attempts


def format_content_range(start: int, end: int, total: int) -> str:
    """Content-Range value for the half-open range ``[start, end)``."""
    if total == 0:
        return "bytes */0"
    return f"bytes {start}-{end - 1}/{total}"


class ChunkTransferEngine(ITransferEngine):
    """
    Byte-range upload loop over aiohttp.

    Transient failures are retried on the same range; the remote protocol
    deduplicates by Content-Range, so a range may be sent more than once.
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        retry_policy: Optional[RetryPolicy] = None,
        request_timeout: Optional[float] = None
    ) -> None:
        self._http = http
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def run(self, record: UploadRecord, file_accessor: IFileAccessor,
                  token: str, signal: TransferSignal,
                  progress_callback: Optional[ProgressCallback] = None) -> TransferOutcome:
        """Send every remaining chunk of ``record`` in ascending order."""
        total = record.size_bytes
        start = record.uploaded_bytes

        if total == 0:
            stopped = self._stopped(signal)
            if stopped:
                return stopped
            if await self._send_with_retry(record, b"", 0, 0, token, signal) is None:
                return self._stopped(signal) or TransferOutcome.PAUSED
            record.touch()
            return TransferOutcome.COMPLETED

        while start < total:
            stopped = self._stopped(signal)
            if stopped:
                return stopped

            end = min(start + record.chunk_size, total)
            data = await file_accessor.read(start, end)
            if len(data) != end - start:
                raise FileMismatchError(
                    f"Read {len(data)} bytes for range {start}-{end - 1}, "
                    f"expected {end - start}; the file changed on disk")

            completed = await self._send_with_retry(record, data, start, end, token, signal)
            if completed is None:
                return self._stopped(signal) or TransferOutcome.PAUSED

            record.uploaded_bytes = total if completed else end
            record.touch()

            if progress_callback:
                await progress_callback(record)

            if completed:
                return TransferOutcome.COMPLETED

            start = end

        return TransferOutcome.COMPLETED

    async def _send_with_retry(self, record: UploadRecord, data: bytes, start: int,
                               end: int, token: str, signal: TransferSignal) -> Optional[bool]:
        """
        Send one range until it is acknowledged.

        Returns:
            True when the object is complete, False when the server wants
            more, None when a stop was requested while waiting to retry
        """
        attempt = 0
        while True:
            try:
                return await self._send_chunk(record, data, start, end, token)
            except TransientTransferError as e:
                attempt += 1
                if self._retry_policy.exhausted(attempt):
                    logger.error(
                        f"Giving up on {record.upload_id} range {start}-{end} "
                        f"after {attempt - 1} retries: {e}")
                    raise

                delay = self._retry_policy.delay_for(attempt)
                logger.warning(
                    f"Chunk {start}-{end} of {record.upload_id} failed ({e}), "
                    f"retry {attempt} in {delay:.1f}s")

                if await signal.wait(timeout=delay):
                    return None

    async def _send_chunk(self, record: UploadRecord, data: bytes,
                          start: int, end: int, token: str) -> bool:
        if not record.session_uri:
            raise SessionExpiredError(f"Upload {record.upload_id} has no session")

        headers = {
            'Authorization': f"Bearer {token}",
            'Content-Range': format_content_range(start, end, record.size_bytes),
            'Content-Type': 'application/octet-stream',
        }

        try:
            async with self._http.put(
                record.session_uri,
                data=data,
                headers=headers,
                timeout=self._timeout,
                allow_redirects=False
            ) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientTransferError(
                f"Transport error: {str(e) or e.__class__.__name__}") from e

        if status == RESUME_INCOMPLETE:
            return False
        if status in SUCCESS_STATUSES:
            return True
        if status in SESSION_GONE_STATUSES:
            raise SessionExpiredError(f"Upload session expired (status {status})", status)
        raise TransientTransferError(f"Upload failed with status: {status}", status)

    def _stopped(self, signal: TransferSignal) -> Optional[TransferOutcome]:
        if not signal.is_set:
            return None
        if signal.reason == StopReason.CANCEL:
            return TransferOutcome.CANCELLED
        return TransferOutcome.PAUSED
