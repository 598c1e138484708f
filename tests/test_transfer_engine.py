"""
Tests for the chunk transfer engine.

This module tests range computation, retry behavior, cooperative stops and
the mapping of response statuses, against the fake upload server.
"""

import asyncio

import aiohttp
import pytest

from resumable_drive.core.domain.signals import TransferSignal
from resumable_drive.core.domain.uploads import (
    TransferOutcome, UploadRecord, UploadStatus
)
from resumable_drive.core.exceptions import (
    FileMismatchError, SessionExpiredError, TransientTransferError
)
from resumable_drive.infrastructure.files.accessor import BytesFileAccessor
from resumable_drive.infrastructure.services.upload.engine import (
    ChunkTransferEngine, RetryPolicy, format_content_range
)
from resumable_drive.infrastructure.services.upload.negotiator import SessionNegotiator

from .conftest import TEST_TOKEN, FakeDrive

MIB = 1024 * 1024


async def _open(http: aiohttp.ClientSession, drive: FakeDrive,
                accessor: BytesFileAccessor, chunk_size: int) -> UploadRecord:
    descriptor = accessor.describe()
    negotiator = SessionNegotiator(http, upload_url=drive.upload_url)
    record = UploadRecord(
        upload_id="upload_1_abc",
        file=descriptor,
        status=UploadStatus.UPLOADING,
        chunk_size=chunk_size,
    )
    record.session_uri = await negotiator.open_session(descriptor, None, TEST_TOKEN)
    return record


class TestFormatContentRange:

    def test_inclusive_end(self) -> None:
        assert format_content_range(0, 5, 12) == "bytes 0-4/12"

    def test_zero_byte_file(self) -> None:
        assert format_content_range(0, 0, 0) == "bytes */0"


class TestRetryPolicy:

    def test_default_is_fixed_and_unbounded(self) -> None:
        policy = RetryPolicy()
        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(50) == 2.0
        assert not policy.exhausted(10_000)

    def test_exponential_backoff_is_capped(self) -> None:
        policy = RetryPolicy(initial_delay=1.0, backoff_factor=2.0, max_delay=5.0)
        assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_bounded_attempts(self) -> None:
        policy = RetryPolicy(max_attempts=2)
        assert not policy.exhausted(2)
        assert policy.exhausted(3)

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(initial_delay=-1)
        with pytest.raises(ValueError):
            RetryPolicy(backoff_factor=0.5)


class TestChunkTransferEngine:
    """Test cases for the chunk loop."""

    @pytest.fixture
    def engine(self, http: aiohttp.ClientSession) -> ChunkTransferEngine:
        return ChunkTransferEngine(http, retry_policy=RetryPolicy(initial_delay=0))

    @pytest.mark.asyncio
    async def test_twelve_mib_in_five_mib_chunks(self, engine: ChunkTransferEngine,
                                                 http: aiohttp.ClientSession,
                                                 drive: FakeDrive) -> None:
        """A 12 MiB file is sent as exactly three ascending ranges."""
        payload = bytes(range(256)) * (12 * MIB // 256)
        accessor = BytesFileAccessor("big.bin", payload)
        record = await _open(http, drive, accessor, chunk_size=5 * MIB)
        progress = []

        async def on_progress(r: UploadRecord) -> None:
            progress.append(r.uploaded_bytes)

        outcome = await engine.run(record, accessor, TEST_TOKEN, TransferSignal(), on_progress)

        assert outcome == TransferOutcome.COMPLETED
        assert drive.chunk_ranges == [
            "bytes 0-5242879/12582912",
            "bytes 5242880-10485759/12582912",
            "bytes 10485760-12582911/12582912",
        ]
        assert progress == [5 * MIB, 10 * MIB, 12 * MIB]
        assert record.uploaded_bytes == record.size_bytes
        assert drive.uploaded(record.session_uri) == payload

    @pytest.mark.asyncio
    async def test_resumes_from_acknowledged_offset(self, engine: ChunkTransferEngine,
                                                    http: aiohttp.ClientSession,
                                                    drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"a" * 3000)
        record = await _open(http, drive, accessor, chunk_size=1000)

        record.uploaded_bytes = 1000

        outcome = await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert outcome == TransferOutcome.COMPLETED
        assert drive.chunk_ranges == ["bytes 1000-1999/3000", "bytes 2000-2999/3000"]

    @pytest.mark.asyncio
    async def test_transient_failure_retries_same_range(self, engine: ChunkTransferEngine,
                                                        http: aiohttp.ClientSession,
                                                        drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"x" * 2500)
        record = await _open(http, drive, accessor, chunk_size=1000)
        drive.chunk_failures = [503, 500]

        outcome = await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert outcome == TransferOutcome.COMPLETED
        assert drive.chunk_ranges == [
            "bytes 0-999/2500",
            "bytes 0-999/2500",
            "bytes 0-999/2500",
            "bytes 1000-1999/2500",
            "bytes 2000-2499/2500",
        ]
        assert record.uploaded_bytes == 2500

    @pytest.mark.asyncio
    async def test_bounded_retries_give_up(self, http: aiohttp.ClientSession,
                                           drive: FakeDrive) -> None:
        engine = ChunkTransferEngine(http, retry_policy=RetryPolicy(initial_delay=0, max_attempts=1))
        accessor = BytesFileAccessor("file.bin", b"x" * 100)
        record = await _open(http, drive, accessor, chunk_size=1000)
        drive.chunk_failures = [503, 503]

        with pytest.raises(TransientTransferError) as exc_info:
            await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert exc_info.value.status == 503
        assert record.uploaded_bytes == 0

    @pytest.mark.asyncio
    async def test_pause_stops_before_next_chunk(self, engine: ChunkTransferEngine,
                                                 http: aiohttp.ClientSession,
                                                 drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"p" * 3000)
        record = await _open(http, drive, accessor, chunk_size=1000)
        signal = TransferSignal()

        async def pause_after_first(r: UploadRecord) -> None:
            signal.request_pause()

        outcome = await engine.run(record, accessor, TEST_TOKEN, signal, pause_after_first)

        assert outcome == TransferOutcome.PAUSED
        assert drive.chunk_ranges == ["bytes 0-999/3000"]
        assert record.uploaded_bytes == 1000

    @pytest.mark.asyncio
    async def test_cancel_wins_over_pause(self, engine: ChunkTransferEngine,
                                          http: aiohttp.ClientSession,
                                          drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"c" * 3000)
        record = await _open(http, drive, accessor, chunk_size=1000)
        signal = TransferSignal()
        signal.request_pause()
        signal.request_cancel()

        outcome = await engine.run(record, accessor, TEST_TOKEN, signal)

        assert outcome == TransferOutcome.CANCELLED
        assert drive.chunk_ranges == []

    @pytest.mark.asyncio
    async def test_stop_during_retry_wait(self, http: aiohttp.ClientSession,
                                          drive: FakeDrive) -> None:
        """A pause arriving during the retry delay ends the run without waiting it out."""
        engine = ChunkTransferEngine(http, retry_policy=RetryPolicy(initial_delay=30))
        accessor = BytesFileAccessor("file.bin", b"w" * 100)
        record = await _open(http, drive, accessor, chunk_size=1000)
        signal = TransferSignal()
        drive.chunk_failures = [503]

        task = asyncio.ensure_future(engine.run(record, accessor, TEST_TOKEN, signal))
        while not drive.chunk_ranges:
            await asyncio.sleep(0.01)
        signal.request_pause()
        outcome = await asyncio.wait_for(task, timeout=5)

        assert outcome == TransferOutcome.PAUSED
        assert drive.chunk_ranges == ["bytes 0-99/100"]
        assert record.uploaded_bytes == 0

    @pytest.mark.asyncio
    async def test_zero_byte_file(self, engine: ChunkTransferEngine,
                                  http: aiohttp.ClientSession, drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("empty.txt", b"")
        record = await _open(http, drive, accessor, chunk_size=1000)

        outcome = await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert outcome == TransferOutcome.COMPLETED
        assert drive.chunk_ranges == ["bytes */0"]
        assert record.uploaded_bytes == 0

    @pytest.mark.asyncio
    async def test_expired_session_is_not_retried(self, engine: ChunkTransferEngine,
                                                  http: aiohttp.ClientSession,
                                                  drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"e" * 100)
        record = await _open(http, drive, accessor, chunk_size=1000)
        drive.expire_all()

        with pytest.raises(SessionExpiredError) as exc_info:
            await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert exc_info.value.status == 404
        assert len(drive.chunk_ranges) == 1

    @pytest.mark.asyncio
    async def test_short_read_is_a_file_mismatch(self, engine: ChunkTransferEngine,
                                                 http: aiohttp.ClientSession,
                                                 drive: FakeDrive) -> None:
        record = await _open(http, drive, BytesFileAccessor("file.bin", b"m" * 2000),
                             chunk_size=1000)
        truncated = BytesFileAccessor("file.bin", b"m" * 1500)

        with pytest.raises(FileMismatchError):
            await engine.run(record, truncated, TEST_TOKEN, TransferSignal())

        assert record.uploaded_bytes == 1000

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, engine: ChunkTransferEngine,
                                      http: aiohttp.ClientSession, drive: FakeDrive) -> None:
        accessor = BytesFileAccessor("file.bin", b"t" * 10)
        record = await _open(http, drive, accessor, chunk_size=1000)

        await engine.run(record, accessor, TEST_TOKEN, TransferSignal())

        assert drive.chunk_auth == [f"Bearer {TEST_TOKEN}"]

