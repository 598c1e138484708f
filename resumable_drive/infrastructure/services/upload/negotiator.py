"""
Resumable session negotiation against the Drive upload endpoint.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ....core.domain.uploads import FileDescriptor
from ....core.exceptions import NegotiationError
from ....core.interfaces.upload import ISessionNegotiator

logger = logging.getLogger(__name__)


DEFAULT_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable"


class SessionNegotiator(ISessionNegotiator):
    """
    Opens and deletes resumable upload sessions.

    There is no retry here: a failed open is final for the attempt.
    """

    def __init__(
        self,
        http: aiohttp.ClientSession,
        upload_url: str = DEFAULT_UPLOAD_URL,
        request_timeout: Optional[float] = None
    ) -> None:
        self._http = http
        self._upload_url = upload_url
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)

    async def open_session(self, descriptor: FileDescriptor,
                           folder_id: Optional[str], token: str) -> str:
        """Declare the upload and return the server-issued session URI."""
        metadata: Dict[str, Any] = {
            'name': descriptor.name,
            'mimeType': descriptor.mime_type,
        }
        if folder_id:
            metadata['parents'] = [folder_id]

        headers = {
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json; charset=UTF-8',
            'X-Upload-Content-Type': descriptor.mime_type,
            'X-Upload-Content-Length': str(descriptor.size_bytes),
        }

        try:
            async with self._http.post(
                self._upload_url,
                data=json.dumps(metadata),
                headers=headers,
                timeout=self._timeout
            ) as response:
                if not 200 <= response.status < 300:
                    raise NegotiationError(
                        f"Failed to initialize upload: {response.status} {response.reason or ''}".rstrip(),
                        response.status)

                location = response.headers.get('Location')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NegotiationError(
                f"Failed to initialize upload: {str(e) or e.__class__.__name__}") from e

        if not location:
            raise NegotiationError("Failed to initialize upload: no session location returned")

        logger.debug(f"Negotiated session for {descriptor.name}")
        return location

    async def close_session(self, session_uri: str, token: Optional[str]) -> None:
        """Delete a session; any response counts as done."""
        headers = {}
        if token:
            headers['Authorization'] = f"Bearer {token}"

        try:
            async with self._http.delete(
                session_uri, headers=headers, timeout=self._timeout
            ) as response:
                logger.debug(f"Session delete returned {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to delete upload session: {e}")
