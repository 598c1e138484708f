"""
Application startup and component wiring.

This module builds every upload component from an ``ApplicationConfig``
and manages the startup and shutdown sequence.
"""

import logging
from typing import Dict, List, Optional

import aiohttp

from ..core.interfaces.lifecycle import IComponent
from ..core.interfaces.upload import ITokenProvider
from ..core.services.notification_bus import NotificationBus
from ..infrastructure.auth.tokens import create_token_provider
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.persistence.snapshot import JsonSnapshotGateway
from ..infrastructure.services.upload.engine import ChunkTransferEngine
from ..infrastructure.services.upload.negotiator import SessionNegotiator
from ..infrastructure.services.upload.registry import UploadRegistry

logger = logging.getLogger(__name__)


class ApplicationStartup:
    """
    Manages component construction and the startup sequence.

    Components are started in dependency order (notification bus, then
    registry) and stopped in reverse. The HTTP client session is created
    on start unless one is injected, and closed on stop only if owned.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        http_session: Optional[aiohttp.ClientSession] = None,
        token_provider: Optional[ITokenProvider] = None
    ) -> None:
        self._config = config
        self._http = http_session
        self._owns_http = http_session is None
        self._token_provider = token_provider
        self._components: Dict[str, IComponent] = {}
        self._started_components: List[IComponent] = []

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    @property
    def registry(self) -> UploadRegistry:
        return self._require('upload_registry')  # type: ignore[return-value]

    @property
    def notification_bus(self) -> NotificationBus:
        return self._require('notification_bus')  # type: ignore[return-value]

    @property
    def components(self) -> Dict[str, IComponent]:
        return dict(self._components)

    def get_component(self, name: str) -> Optional[IComponent]:
        return self._components.get(name)

    async def configure_services(self) -> None:
        """Build all components from configuration."""
        if self._components:
            return

        logger.info("Configuring application services...")
        config = self._config

        if self._http is None:
            self._http = aiohttp.ClientSession()

        token_provider = self._token_provider or create_token_provider(config.auth)

        bus = NotificationBus()
        negotiator = SessionNegotiator(
            self._http,
            upload_url=config.drive.upload_url,
            request_timeout=config.drive.request_timeout
        )
        engine = ChunkTransferEngine(
            self._http,
            retry_policy=config.upload.retry.to_policy(),
            request_timeout=config.drive.request_timeout
        )
        registry = UploadRegistry(
            negotiator=negotiator,
            engine=engine,
            token_provider=token_provider,
            gateway=JsonSnapshotGateway(config.storage.snapshot_path),
            notification_bus=bus,
            chunk_size=config.upload.chunk_size,
            default_folder_id=config.upload.default_folder_id,
            persist_every_chunks=config.upload.persist_every_chunks
        )

        # Insertion order is the startup order
        self._components['notification_bus'] = bus
        self._components['upload_registry'] = registry

        logger.info("Service configuration completed")

    async def start_application(self) -> None:
        """Start all components in order, rolling back on failure."""
        await self.configure_services()
        logger.info("Starting application components...")

        for component_name, component in self._components.items():
            try:
                await component.start()
                self._started_components.append(component)
                logger.info(f"Started component: {component_name}")
            except Exception as e:
                logger.error(f"Failed to start component {component_name}: {e}")
                await self.stop_application()
                raise

        logger.info("Application startup completed successfully")

    async def stop_application(self) -> None:
        """Stop started components in reverse order and release the HTTP session."""
        logger.info("Stopping application components...")

        for component in reversed(self._started_components):
            try:
                await component.stop()
                logger.info(f"Stopped component: {component.name}")
            except Exception as e:
                logger.error(f"Error stopping component {component.name}: {e}")

        self._started_components.clear()

        if self._owns_http and self._http is not None and not self._http.closed:
            await self._http.close()

        logger.info("Application shutdown completed")

    async def __aenter__(self) -> 'ApplicationStartup':
        await self.start_application()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop_application()

    def _require(self, name: str) -> IComponent:
        component = self._components.get(name)
        if component is None:
            raise RuntimeError(f"Component '{name}' is not configured")
        return component
