"""
Tests for application startup and component wiring.
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from resumable_drive.application.startup import ApplicationStartup
from resumable_drive.core.exceptions import ConfigurationError
from resumable_drive.core.services.notification_bus import NotificationBus
from resumable_drive.infrastructure.auth.tokens import StaticTokenProvider
from resumable_drive.infrastructure.config.models import ApplicationConfig
from resumable_drive.infrastructure.services.upload.registry import UploadRegistry


@pytest.fixture
def config(tmp_path: Path) -> ApplicationConfig:
    return ApplicationConfig.from_dict({
        'storage': {'snapshot_path': str(tmp_path / "uploads.json")},
        'auth': {'token': "token"},
        'upload': {'retry': {'max_attempts': 2}},
    })


class TestApplicationStartup:
    """Test cases for ApplicationStartup."""

    def test_components_require_configuration(self, config: ApplicationConfig) -> None:
        startup = ApplicationStartup(config)

        with pytest.raises(RuntimeError):
            startup.registry
        assert startup.components == {}

    @pytest.mark.asyncio
    async def test_configure_services(self, config: ApplicationConfig) -> None:
        startup = ApplicationStartup(config)
        await startup.configure_services()

        assert list(startup.components) == ['notification_bus', 'upload_registry']
        assert isinstance(startup.notification_bus, NotificationBus)
        assert isinstance(startup.registry, UploadRegistry)
        assert startup.get_component('missing') is None

        await startup.stop_application()

    @pytest.mark.asyncio
    async def test_lifecycle_owns_http_session(self, config: ApplicationConfig,
                                               tmp_path: Path) -> None:
        async with ApplicationStartup(config) as startup:
            http = startup._http
            assert startup.registry.is_running
            assert not http.closed

        assert http.closed
        assert not startup.registry.is_running
        assert (tmp_path / "uploads.json").exists()

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self, config: ApplicationConfig) -> None:
        async with aiohttp.ClientSession() as http:
            provider = StaticTokenProvider("injected")
            async with ApplicationStartup(config, http_session=http,
                                          token_provider=provider) as startup:
                assert startup.registry._token_provider is provider

            assert not http.closed

    @pytest.mark.asyncio
    async def test_start_failure_rolls_back(self, config: ApplicationConfig) -> None:
        startup = ApplicationStartup(config)
        await startup.configure_services()
        bus = startup.notification_bus

        with patch.object(UploadRegistry, 'start', AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(RuntimeError, match="boom"):
                await startup.start_application()

        health = await bus.check_health()
        assert health['status'] == "stopped"

    @pytest.mark.asyncio
    async def test_invalid_auth_config_fails(self, tmp_path: Path) -> None:
        config = ApplicationConfig.from_dict({'auth': {'provider': "file"}})
        startup = ApplicationStartup(config)

        with pytest.raises(ConfigurationError, match="token_file"):
            await startup.configure_services()

        await startup.stop_application()
