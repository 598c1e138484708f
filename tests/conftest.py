"""
Shared fixtures: an in-process fake of the resumable upload API and
factories wiring real components against it.
"""

import re
import uuid
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from resumable_drive.core.services.notification_bus import NotificationBus
from resumable_drive.infrastructure.auth.tokens import StaticTokenProvider
from resumable_drive.infrastructure.persistence.snapshot import JsonSnapshotGateway
from resumable_drive.infrastructure.services.upload.engine import ChunkTransferEngine, RetryPolicy
from resumable_drive.infrastructure.services.upload.negotiator import SessionNegotiator
from resumable_drive.infrastructure.services.upload.registry import UploadRegistry


TEST_TOKEN = "test-token"

CONTENT_RANGE = re.compile(r"^bytes (?:(\d+)-(\d+)|\*)/(\d+)$")


class FakeDrive:
    """
    Minimal resumable upload server.

    Records every request so tests can assert on the wire traffic, and
    lets tests inject failures for upcoming chunk requests.
    """

    def __init__(self) -> None:
        self.base_url = ""
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.open_requests: List[Dict[str, Any]] = []
        self.chunk_ranges: List[str] = []
        self.chunk_auth: List[Optional[str]] = []
        self.deleted: List[str] = []

        self.open_status = 200
        self.omit_location = False
        self.chunk_failures: List[int] = []
        self.after_chunk: Optional[Callable[[int], Awaitable[None]]] = None

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload?uploadType=resumable"

    def session_uri(self, session_id: str) -> str:
        return f"{self.base_url}/sessions/{session_id}"

    def expire_all(self) -> None:
        self.sessions.clear()

    def uploaded(self, session_uri: str) -> bytes:
        session_id = session_uri.rsplit('/', 1)[-1]
        session = self.sessions[session_id]
        return bytes(session['data'][:session['received']])

    def make_app(self) -> web.Application:
        app = web.Application(client_max_size=32 * 1024 * 1024)
        app.router.add_post('/upload', self._open_session)
        app.router.add_put('/sessions/{session_id}', self._put_chunk)
        app.router.add_delete('/sessions/{session_id}', self._delete_session)
        return app

    async def _open_session(self, request: web.Request) -> web.Response:
        self.open_requests.append({
            'headers': dict(request.headers),
            'metadata': await request.json(),
        })
        if self.open_status != 200:
            return web.Response(status=self.open_status, reason="Forbidden")

        session_id = uuid.uuid4().hex
        total = int(request.headers['X-Upload-Content-Length'])
        self.sessions[session_id] = {
            'total': total,
            'received': 0,
            'data': bytearray(total),
        }
        headers = {} if self.omit_location else {'Location': self.session_uri(session_id)}
        return web.Response(status=200, headers=headers)

    async def _put_chunk(self, request: web.Request) -> web.Response:
        session_id = request.match_info['session_id']
        content_range = request.headers.get('Content-Range', '')
        self.chunk_ranges.append(content_range)
        self.chunk_auth.append(request.headers.get("Authorization"))
        body = await request.read()

        if session_id not in self.sessions:
            return web.Response(status=404)

        if self.chunk_failures:
            return web.Response(status=self.chunk_failures.pop(0))

        match = CONTENT_RANGE.match(content_range)
        if match is None:
            return web.Response(status=400)

        session = self.sessions[session_id]
        if match.group(1) is not None:
            start, end = int(match.group(1)), int(match.group(2)) + 1
            if len(body) != end - start:
                return web.Response(status=400)
            session['data'][start:end] = body
            session['received'] = max(session['received'], end)

        received = session['received']
        if self.after_chunk is not None:
            await self.after_chunk(len(self.chunk_ranges))

        if received >= session['total']:
            return web.json_response({'id': f"file-{session_id}"}, status=200)
        return web.Response(status=308, headers={'Range': f"bytes=0-{received - 1}"})

    async def _delete_session(self, request: web.Request) -> web.Response:
        session_id = request.match_info['session_id']
        self.deleted.append(session_id)
        self.sessions.pop(session_id, None)
        return web.Response(status=204)


@pytest.fixture
async def drive() -> AsyncGenerator[FakeDrive, None]:
    """Start a fake upload server for the duration of a test."""
    fake = FakeDrive()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.base_url = str(server.make_url('')).rstrip('/')
    yield fake
    await server.close()


@pytest.fixture
async def http() -> AsyncGenerator[aiohttp.ClientSession, None]:
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def snapshot_path(tmp_path: Any) -> Any:
    return tmp_path / "uploads.json"


@pytest.fixture
def make_registry(http: aiohttp.ClientSession, drive: FakeDrive,
                  snapshot_path: Any) -> Callable[..., UploadRegistry]:
    """Factory for registries sharing one snapshot file, as across restarts."""

    def factory(token: Optional[str] = TEST_TOKEN,
                bus: Optional[NotificationBus] = None,
                chunk_size: int = 1024,
                persist_every_chunks: int = 5,
                retry_policy: Optional[RetryPolicy] = None) -> UploadRegistry:
        return UploadRegistry(
            negotiator=SessionNegotiator(http, upload_url=drive.upload_url),
            engine=ChunkTransferEngine(
                http, retry_policy=retry_policy or RetryPolicy(initial_delay=0)),
            token_provider=StaticTokenProvider(token),
            gateway=JsonSnapshotGateway(snapshot_path),
            notification_bus=bus,
            chunk_size=chunk_size,
            persist_every_chunks=persist_every_chunks
        )

    return factory
