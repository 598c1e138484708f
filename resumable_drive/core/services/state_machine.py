"""
Upload state machine.

The machine is the only writer of ``UploadRecord.status``. It also drives a
single transfer attempt: token, session negotiation, chunk loop, and the
mapping of the loop's outcome back onto the lifecycle.
"""

import logging
import time
from typing import Dict, FrozenSet, Optional

from ..domain.signals import StopReason, TransferSignal
from ..domain.uploads import TransferOutcome, UploadRecord, UploadStatus
from ..exceptions import (
    AuthError, FileMismatchError, NegotiationError, SessionExpiredError,
    TransientTransferError
)
from ..interfaces.upload import (
    IFileAccessor, ISessionNegotiator, ITokenProvider, ITransferEngine, ProgressCallback
)

logger = logging.getLogger(__name__)


_S = UploadStatus

TRANSITIONS: Dict[UploadStatus, FrozenSet[UploadStatus]] = {
    _S.INITIALIZING: frozenset({_S.UPLOADING, _S.ERROR, _S.INTERRUPTED, _S.CANCELLED}),
    _S.UPLOADING: frozenset({_S.PAUSED, _S.COMPLETED, _S.ERROR, _S.INTERRUPTED, _S.CANCELLED}),
    _S.PAUSED: frozenset({_S.UPLOADING, _S.INTERRUPTED, _S.CANCELLED}),
    _S.INTERRUPTED: frozenset({_S.UPLOADING, _S.CANCELLED}),
    _S.ERROR: frozenset({_S.CANCELLED}),
    # Completed records may still be removed by the caller
    _S.COMPLETED: frozenset({_S.CANCELLED}),
    _S.CANCELLED: frozenset(),
}

RECOVERABLE_ON_RESTART = frozenset({_S.INITIALIZING, _S.UPLOADING, _S.PAUSED})


class UploadStateMachine:
    """
    Authoritative lifecycle of one upload record.

    Invalid transition requests are rejected with a warning and reported as
    ``False``; they never raise.
    """

    def __init__(
        self,
        record: UploadRecord,
        negotiator: ISessionNegotiator,
        engine: ITransferEngine,
        token_provider: ITokenProvider,
        progress_callback: Optional[ProgressCallback] = None,
        state_callback: Optional[ProgressCallback] = None
    ) -> None:
        self._record = record
        self._negotiator = negotiator
        self._engine = engine
        self._token_provider = token_provider
        self._progress_callback = progress_callback
        self._state_callback = state_callback
        self._signal = TransferSignal()

    @property
    def record(self) -> UploadRecord:
        return self._record

    @property
    def status(self) -> UploadStatus:
        return self._record.status

    @property
    def signal(self) -> TransferSignal:
        return self._signal

    def can_transition(self, target: UploadStatus) -> bool:
        return target in TRANSITIONS[self._record.status]

    def transition(self, target: UploadStatus, error: Optional[str] = None) -> bool:
        """
        Move the record to ``target`` if the transition table allows it.

        Args:
            target: Requested status
            error: Message stored in ``last_error`` when entering ERROR

        Returns:
            True if the record changed state
        """
        record = self._record
        current = record.status

        if not self.can_transition(target):
            logger.warning(
                f"Rejected transition {current.value} -> {target.value} for {record.upload_id}")
            return False

        if target == UploadStatus.COMPLETED and record.uploaded_bytes != record.size_bytes:
            logger.warning(
                f"Rejected completion of {record.upload_id}: "
                f"{record.uploaded_bytes}/{record.size_bytes} bytes acknowledged")
            return False

        record.status = target
        record.touch()

        if target == UploadStatus.COMPLETED:
            record.completed_at = time.time()
        elif target == UploadStatus.ERROR:
            record.last_error = error or "Unknown error"
        elif target == UploadStatus.UPLOADING:
            record.last_error = None

        logger.debug(f"Upload {record.upload_id}: {current.value} -> {target.value}")
        return True

    def request_pause(self) -> bool:
        """Pause at the next chunk boundary; valid only while uploading."""
        if self._record.status != UploadStatus.UPLOADING:
            return False
        self.transition(UploadStatus.PAUSED)
        self._signal.request_pause()
        return True

    def request_cancel(self) -> bool:
        """Stop the transfer at the next chunk boundary and mark cancelled."""
        if not self.transition(UploadStatus.CANCELLED):
            return False
        self._signal.request_cancel()
        return True

    def halt(self) -> None:
        """Stop any running attempt at the next boundary, for shutdown."""
        if not self.request_pause():
            self._signal.request_pause()

    def interrupt(self) -> bool:
        """Mark a record whose live resources were lost in a restart."""
        if self._record.status not in RECOVERABLE_ON_RESTART:
            return False
        return self.transition(UploadStatus.INTERRUPTED)

    def prepare_resume(self) -> bool:
        """
        Accept a resume request and claim the record for a new attempt.

        The record moves to uploading at once, so a second resume of the
        same record is rejected until this attempt stops. ``run`` opens a
        new session first when the record never got one.
        """
        if self._record.status not in (UploadStatus.PAUSED, UploadStatus.INTERRUPTED):
            return False

        self._signal.clear()
        return self.transition(UploadStatus.UPLOADING)

    async def run(self, file_accessor: IFileAccessor) -> UploadStatus:
        """
        Drive one transfer attempt until it completes, stops or fails.

        Returns:
            The record status after the attempt
        """
        record = self._record

        try:
            token = await self._token_provider.get_token(interactive=True)
            if not token:
                raise AuthError("Authentication required")

            if record.session_uri is None:
                session_uri = await self._negotiator.open_session(
                    record.file, record.folder_id, token)

                if self._signal.reason == StopReason.CANCEL:
                    # Cancelled while negotiating; nobody else knows this session
                    await self._negotiator.close_session(session_uri, token)
                    return record.status

                record.session_uri = session_uri
                logger.info(f"Opened upload session for {record.upload_id}")

            if self._signal.reason == StopReason.PAUSE and record.status != UploadStatus.PAUSED:
                # Halted before the first chunk; the session is kept for resume
                if record.status == UploadStatus.INITIALIZING:
                    self.transition(UploadStatus.INTERRUPTED)
                return record.status

            if record.status in (UploadStatus.INITIALIZING, UploadStatus.INTERRUPTED):
                self.transition(UploadStatus.UPLOADING)
                if self._state_callback is not None:
                    await self._state_callback(record)

            if record.status != UploadStatus.UPLOADING:
                return record.status

            outcome = await self._engine.run(
                record, file_accessor, token, self._signal, self._progress_callback)

            if outcome == TransferOutcome.COMPLETED:
                if record.status == UploadStatus.PAUSED:
                    # The final chunk was already in flight when the pause arrived
                    self.transition(UploadStatus.UPLOADING)
                self.transition(UploadStatus.COMPLETED)
                logger.info(f"Upload completed: {record.upload_id} ({record.file.name})")
            elif outcome == TransferOutcome.PAUSED:
                logger.info(
                    f"Upload paused: {record.upload_id} at {record.uploaded_bytes} bytes")

        except SessionExpiredError as e:
            record.session_uri = None
            self._fail(str(e))
        except (AuthError, FileMismatchError, NegotiationError, TransientTransferError) as e:
            self._fail(str(e))
        except Exception as e:
            logger.exception(f"Unexpected failure while uploading {record.upload_id}")
            self._fail(str(e) or e.__class__.__name__)

        return record.status

    def _fail(self, message: str) -> None:
        if self._record.status == UploadStatus.CANCELLED:
            return
        logger.error(f"Upload {self._record.upload_id} failed: {message}")
        if self._record.status == UploadStatus.PAUSED:
            # The failing chunk was already in flight when the pause arrived
            self.transition(UploadStatus.UPLOADING)
        self.transition(UploadStatus.ERROR, error=message)
