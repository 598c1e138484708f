"""
Upload registry implementation.

The registry owns every upload record held in memory, keeps the durable
snapshot in step with it, and runs one asyncio task per active transfer.
All record mutation happens on the event loop, so no lock is needed.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from ....core.domain.events import UploadEvents
from ....core.domain.uploads import (
    DEFAULT_CHUNK_SIZE, UploadRecord, UploadStatus, generate_upload_id
)
from ....core.interfaces.lifecycle import IComponent
from ....core.interfaces.messaging import INotificationBus
from ....core.interfaces.upload import (
    IFileAccessor, IPersistenceGateway, ISessionNegotiator, ITokenProvider,
    ITransferEngine, IUploadRegistry
)
from ....core.services.state_machine import UploadStateMachine

logger = logging.getLogger(__name__)


FINISHED_STATUSES = frozenset({UploadStatus.COMPLETED, UploadStatus.ERROR})


class UploadRegistry(IUploadRegistry, IComponent):
    """
    Upload registry service implementation.

    Creates records, drives them through their state machines, snapshots
    them through the persistence gateway and announces every change on the
    notification bus.
    """

    def __init__(
        self,
        negotiator: ISessionNegotiator,
        engine: ITransferEngine,
        token_provider: ITokenProvider,
        gateway: IPersistenceGateway,
        notification_bus: Optional[INotificationBus] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        default_folder_id: Optional[str] = None,
        persist_every_chunks: int = 5
    ):
        """
        Initialize upload registry.

        Args:
            negotiator: Opens and closes remote sessions
            engine: Chunk transfer loop
            token_provider: Bearer token source
            gateway: Snapshot storage
            notification_bus: Bus for state change events
            chunk_size: Default chunk size in bytes
            default_folder_id: Destination used when a caller gives none
            persist_every_chunks: Snapshot interval while uploading
        """
        self._negotiator = negotiator
        self._engine = engine
        self._token_provider = token_provider
        self._gateway = gateway
        self._bus = notification_bus
        self._chunk_size = chunk_size
        self._default_folder_id = default_folder_id
        self._persist_every_chunks = max(1, persist_every_chunks)

        self._records: Dict[str, UploadRecord] = {}
        self._machines: Dict[str, UploadStateMachine] = {}
        self._tasks: Dict[str, asyncio.Task[None]] = {}
        self._chunks_since_persist: Dict[str, int] = {}
        self._running = False

    @property
    def name(self) -> str:
        return "UploadRegistry"

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """
        Load the snapshot and recover from the previous run.

        Records that were mid-transfer lost their file handle with the old
        process; they become interrupted and wait for a caller to resume
        them with a fresh file.
        """
        if self._running:
            return

        records = await self._gateway.load()
        recovered = 0
        for record in records:
            machine = self._attach(record)
            if machine.interrupt():
                recovered += 1

        await self._persist()
        self._running = True

        logger.info(
            f"Upload registry started with {len(records)} uploads "
            f"({recovered} marked interrupted)")

    async def stop(self) -> None:
        """Pause active transfers, wait for them to settle and snapshot."""
        if not self._running:
            return

        self._running = False

        for machine in self._machines.values():
            machine.halt()

        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self._persist()
        logger.info("Upload registry stopped")

    async def check_health(self) -> Dict[str, Any]:
        return {
            'healthy': self._running,
            'status': 'running' if self._running else 'stopped',
            'details': self.get_statistics(),
        }

    async def start_upload(self, file_accessor: IFileAccessor,
                           folder_id: Optional[str] = None,
                           chunk_size: Optional[int] = None) -> str:
        """Create a record, persist it and start transferring it."""
        self._ensure_running()

        record = UploadRecord(
            upload_id=generate_upload_id(),
            file=file_accessor.describe(),
            chunk_size=chunk_size or self._chunk_size,
            folder_id=folder_id or self._default_folder_id,
        )
        machine = self._attach(record)

        await self._persist()
        await self._notify(record)

        self._launch(machine, file_accessor)

        logger.info(
            f"Created upload {record.upload_id} ({record.file.name}, {record.size_bytes} bytes)")
        return record.upload_id

    async def pause_upload(self, upload_id: str) -> bool:
        """Pause an upload; only valid while it is uploading."""
        machine = self._lookup(upload_id)
        if machine is None or not machine.request_pause():
            return False

        await self._persist()
        await self._notify(machine.record)
        return True

    async def resume_upload(self, upload_id: str, file_accessor: IFileAccessor) -> bool:
        """Resume a paused or interrupted upload from its acknowledged offset."""
        self._ensure_running()

        machine = self._lookup(upload_id)
        if machine is None:
            return False

        record = machine.record
        if record.status not in (UploadStatus.PAUSED, UploadStatus.INTERRUPTED):
            logger.warning(f"Cannot resume {upload_id} from {record.status.value}")
            return False

        descriptor = file_accessor.describe()
        if descriptor.size_bytes != record.size_bytes:
            logger.warning(
                f"Cannot resume {upload_id}: file is {descriptor.size_bytes} bytes, "
                f"upload expects {record.size_bytes}")
            return False

        previous = self._tasks.get(upload_id)
        if previous is not None and not previous.done():
            # A paused attempt may still be finishing its last chunk
            await previous

        if not machine.prepare_resume():
            return False

        await self._persist()
        await self._notify(record)

        self._launch(machine, file_accessor)

        logger.info(f"Resumed upload {upload_id} at {record.uploaded_bytes} bytes")
        return True

    async def cancel_upload(self, upload_id: str) -> bool:
        """Cancel an upload in any state and forget it."""
        machine = self._lookup(upload_id)
        if machine is None:
            return False

        record = machine.record
        session_uri = record.session_uri
        machine.request_cancel()
        self._detach(upload_id)

        if session_uri:
            token = await self._token_provider.get_token(interactive=False)
            await self._negotiator.close_session(session_uri, token)
            record.session_uri = None

        await self._persist()
        await self._notify_removed(upload_id)

        logger.info(f"Cancelled upload {upload_id}")
        return True

    def list_uploads(self) -> List[UploadRecord]:
        return [record.copy() for record in self._records.values()]

    def get_upload(self, upload_id: str) -> Optional[UploadRecord]:
        record = self._records.get(upload_id)
        return record.copy() if record else None

    async def clear_finished(self) -> int:
        """Remove completed and failed uploads."""
        finished = [
            upload_id for upload_id, record in self._records.items()
            if record.status in FINISHED_STATUSES
        ]
        if not finished:
            return 0

        for upload_id in finished:
            self._detach(upload_id)

        await self._persist()
        for upload_id in finished:
            await self._notify_removed(upload_id)

        logger.info(f"Cleared {len(finished)} finished uploads")
        return len(finished)

    async def clear_all(self) -> int:
        """Cancel every upload and delete the snapshot."""
        upload_ids = list(self._records)
        for upload_id in upload_ids:
            await self.cancel_upload(upload_id)

        await self._gateway.clear()
        logger.info(f"Cleared all upload data ({len(upload_ids)} uploads)")
        return len(upload_ids)

    async def wait_for(self, upload_id: str) -> Optional[UploadRecord]:
        task = self._tasks.get(upload_id)
        if task is not None:
            await task
        return self.get_upload(upload_id)

    def get_statistics(self) -> Dict[str, Any]:
        counts = Counter(record.status.value for record in self._records.values())
        return {
            'uploads_total': len(self._records),
            'uploads_active': sum(
                1 for task in self._tasks.values() if not task.done()),
            'by_status': {status.value: counts.get(status.value, 0) for status in UploadStatus
                          if status != UploadStatus.CANCELLED},
            'bytes_uploaded': sum(r.uploaded_bytes for r in self._records.values()),
        }

    def _attach(self, record: UploadRecord) -> UploadStateMachine:
        machine = UploadStateMachine(
            record=record,
            negotiator=self._negotiator,
            engine=self._engine,
            token_provider=self._token_provider,
            progress_callback=self._on_progress,
            state_callback=self._on_state_change
        )
        self._records[record.upload_id] = record
        self._machines[record.upload_id] = machine
        self._chunks_since_persist[record.upload_id] = 0
        return machine

    def _detach(self, upload_id: str) -> None:
        self._records.pop(upload_id, None)
        self._machines.pop(upload_id, None)
        self._chunks_since_persist.pop(upload_id, None)

    def _lookup(self, upload_id: str) -> Optional[UploadStateMachine]:
        machine = self._machines.get(upload_id)
        if machine is None:
            logger.warning(f"Upload not found: {upload_id}")
        return machine

    def _ensure_running(self) -> None:
        if not self._running:
            raise RuntimeError("Upload registry is not running")

    def _launch(self, machine: UploadStateMachine, file_accessor: IFileAccessor) -> None:
        upload_id = machine.record.upload_id
        self._chunks_since_persist[upload_id] = 0
        self._tasks[upload_id] = asyncio.create_task(
            self._drive(machine, file_accessor), name=f"upload-{upload_id}")

    async def _drive(self, machine: UploadStateMachine, file_accessor: IFileAccessor) -> None:
        """Run one transfer attempt and snapshot its outcome."""
        upload_id = machine.record.upload_id
        try:
            try:
                await machine.run(file_accessor)
            finally:
                await file_accessor.close()

            # Cancelled records were already snapshotted by the cancel
            if upload_id in self._records:
                await self._persist()
                await self._notify(machine.record)
        finally:
            if self._tasks.get(upload_id) is asyncio.current_task():
                del self._tasks[upload_id]

    async def _on_progress(self, record: UploadRecord) -> None:
        upload_id = record.upload_id
        if upload_id not in self._records:
            return

        count = self._chunks_since_persist.get(upload_id, 0) + 1
        if count >= self._persist_every_chunks:
            count = 0
            await self._persist()
            await self._notify(record)
        self._chunks_since_persist[upload_id] = count

    async def _on_state_change(self, record: UploadRecord) -> None:
        if record.upload_id not in self._records:
            return
        await self._persist()
        await self._notify(record)

    async def _persist(self) -> None:
        await self._gateway.save(list(self._records.values()))

    async def _notify(self, record: UploadRecord) -> None:
        if self._bus is None:
            return
        try:
            await self._bus.publish(UploadEvents.UPDATED, record.to_dict())
        except Exception as e:
            logger.warning(f"Failed to publish update for {record.upload_id}: {e}")

    async def _notify_removed(self, upload_id: str) -> None:
        if self._bus is None:
            return
        try:
            await self._bus.publish(UploadEvents.REMOVED, {'upload_id': upload_id})
        except Exception as e:
            logger.warning(f"Failed to publish removal of {upload_id}: {e}")
