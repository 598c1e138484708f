"""
Upload management API router.

This module provides REST endpoints for starting, pausing, resuming,
cancelling and listing uploads, plus a WebSocket stream of upload events.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import (
    APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
)
from pydantic import BaseModel, Field

from ....core.domain.events import Event, UploadEvents
from ....core.interfaces.messaging import INotificationBus
from ....core.interfaces.upload import IUploadRegistry
from ....infrastructure.files.accessor import LocalFileAccessor
from ..dependencies import get_notification_bus, get_registry

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 256


class StartUploadRequest(BaseModel):
    """Upload start request model."""
    path: str = Field(..., min_length=1, description="Local path of the file to upload")
    folder_id: Optional[str] = Field(None, description="Destination folder identifier")
    chunk_size: Optional[int] = Field(None, gt=0, description="Chunk size in bytes")


class ResumeUploadRequest(BaseModel):
    """Upload resume request model."""
    path: str = Field(..., min_length=1, description="Local path of the same file")


router = APIRouter(
    prefix="/api/uploads",
    tags=["uploads"],
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Upload not found"},
    }
)


def _open_file(path: str) -> LocalFileAccessor:
    try:
        return LocalFileAccessor(path)
    except FileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _require_upload(registry: IUploadRegistry, upload_id: str) -> None:
    if registry.get_upload(upload_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload {upload_id} not found"
        )


@router.get("")
async def list_uploads(registry: IUploadRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """List all uploads in creation order."""
    return {"uploads": [record.to_dict() for record in registry.list_uploads()]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_upload(
    request: StartUploadRequest,
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """Start uploading a local file."""
    accessor = _open_file(request.path)
    try:
        upload_id = await registry.start_upload(
            accessor, folder_id=request.folder_id, chunk_size=request.chunk_size)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"upload_id": upload_id}


@router.post("/clear")
async def clear_uploads(
    all_uploads: bool = Query(False, alias="all", description="Cancel every upload and delete the snapshot"),
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """Remove completed and failed uploads, or everything with ``all``."""
    if all_uploads:
        return {"cleared": await registry.clear_all()}
    return {"cleared": await registry.clear_finished()}


@router.get("/{upload_id}")
async def get_upload(
    upload_id: str,
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    record = registry.get_upload(upload_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload {upload_id} not found"
        )
    return record.to_dict()


@router.post("/{upload_id}/pause")
async def pause_upload(
    upload_id: str,
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    _require_upload(registry, upload_id)
    return {"success": await registry.pause_upload(upload_id)}


@router.post("/{upload_id}/resume")
async def resume_upload(
    upload_id: str,
    request: ResumeUploadRequest,
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    _require_upload(registry, upload_id)
    accessor = _open_file(request.path)
    try:
        success = await registry.resume_upload(upload_id, accessor)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if not success:
        await accessor.close()
    return {"success": success}


@router.delete("/{upload_id}")
async def cancel_upload(
    upload_id: str,
    registry: IUploadRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    _require_upload(registry, upload_id)
    return {"success": await registry.cancel_upload(upload_id)}


def enqueue_event(queue: "asyncio.Queue[Event]") -> Callable[[Event], None]:
    """Bus handler that drops events once a slow client lets ``queue`` fill up."""

    def put(event: Event) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event stream client is behind, dropping {event.name}")

    return put


@router.websocket("/events")
async def upload_events(
    websocket: WebSocket,
    bus: INotificationBus = Depends(get_notification_bus)
) -> None:
    """
    Stream ``upload.*`` events to a WebSocket client.

    Each message is ``{"event": name, "data": ..., "timestamp": ...}``.
    Incoming client messages are ignored.
    """
    queue: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
    # Subscribed before accepting so the client sees every event after connect
    subscription_id = await bus.subscribe(UploadEvents.ALL, enqueue_event(queue))

    async def forward() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json({
                "event": event.name,
                "data": event.data,
                "timestamp": event.timestamp,
            })

    sender: Optional["asyncio.Task[None]"] = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(forward())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Upload event stream client disconnected")
    finally:
        if sender is not None:
            sender.cancel()
        await bus.unsubscribe(subscription_id)
