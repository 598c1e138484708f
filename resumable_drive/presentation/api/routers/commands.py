"""
Message-style command endpoint.

Accepts the same ``{"action": ...}`` dictionaries as the in-process
command handler and always answers 200 with either the payload or
``{"error": message}``.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ....application.commands import UploadCommandHandler
from ..dependencies import get_command_handler

router = APIRouter(prefix="/api/commands", tags=["commands"])


@router.post("")
async def execute_command(
    request: Dict[str, Any] = Body(...),
    handler: UploadCommandHandler = Depends(get_command_handler)
) -> Dict[str, Any]:
    """Execute one message-style upload command."""
    return await handler.handle(request)
