"""
Message-style command handling.

Requests are plain dictionaries keyed by ``action``; every outcome,
including malformed requests, is answered with a dictionary so callers
never see an exception.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from ..core.domain.commands import CommandAction, CommandResult, UploadCommand
from ..core.exceptions import ResumableDriveError
from ..core.interfaces.upload import IUploadRegistry
from ..infrastructure.files.accessor import LocalFileAccessor

logger = logging.getLogger(__name__)


class UploadCommandHandler:
    """Translates command requests into upload registry calls."""

    def __init__(self, registry: IUploadRegistry) -> None:
        self._registry = registry
        self._handlers: Dict[CommandAction, Callable[[UploadCommand], Awaitable[CommandResult]]] = {
            CommandAction.GET_UPLOADS: self._get_uploads,
            CommandAction.START_UPLOAD: self._start_upload,
            CommandAction.PAUSE_UPLOAD: self._pause_upload,
            CommandAction.RESUME_UPLOAD: self._resume_upload,
            CommandAction.CANCEL_UPLOAD: self._cancel_upload,
            CommandAction.CLEAR_FINISHED: self._clear_finished,
        }

    async def handle(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute one request.

        Returns:
            The success payload, or ``{"error": message}``
        """
        try:
            command = UploadCommand.from_request(request)
        except ValueError as e:
            logger.warning(f"Rejected command request: {e}")
            return CommandResult.failure("", str(e)).to_response()

        return (await self.execute(command)).to_response()

    async def execute(self, command: UploadCommand) -> CommandResult:
        handler = self._handlers[command.action]
        try:
            return await handler(command)
        except (ValueError, OSError, ResumableDriveError, RuntimeError) as e:
            logger.warning(f"Command {command.action.value} failed: {e}")
            return CommandResult.failure(command.command_id, str(e))

    async def _get_uploads(self, command: UploadCommand) -> CommandResult:
        uploads = [record.to_dict() for record in self._registry.list_uploads()]
        return CommandResult.success(command.command_id, uploads=uploads)

    async def _start_upload(self, command: UploadCommand) -> CommandResult:
        accessor = LocalFileAccessor(command.require('path'))
        upload_id = await self._registry.start_upload(
            accessor,
            folder_id=command.params.get('folderId'),
            chunk_size=command.params.get('chunkSize')
        )
        return CommandResult.success(command.command_id, uploadId=upload_id)

    async def _pause_upload(self, command: UploadCommand) -> CommandResult:
        success = await self._registry.pause_upload(command.require('uploadId'))
        return CommandResult.success(command.command_id, success=success)

    async def _resume_upload(self, command: UploadCommand) -> CommandResult:
        upload_id = command.require('uploadId')
        accessor = LocalFileAccessor(command.require('path'))
        success = await self._registry.resume_upload(upload_id, accessor)
        if not success:
            await accessor.close()
        return CommandResult.success(command.command_id, success=success)

    async def _cancel_upload(self, command: UploadCommand) -> CommandResult:
        success = await self._registry.cancel_upload(command.require('uploadId'))
        return CommandResult.success(command.command_id, success=success)

    async def _clear_finished(self, command: UploadCommand) -> CommandResult:
        cleared = await self._registry.clear_finished()
        return CommandResult.success(command.command_id, cleared=cleared)
