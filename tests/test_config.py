"""
Tests for configuration models and loader.

This module tests file loading in both formats, environment variable
overrides, validation and saving.
"""

import json
from pathlib import Path
from typing import Any, Dict
from unittest.mock import patch

import pytest
import yaml

from resumable_drive.core.exceptions import ConfigurationError
from resumable_drive.infrastructure.config.loader import ConfigLoader
from resumable_drive.infrastructure.config.models import (
    ApplicationConfig, RetryConfig, UploadConfig
)


class TestApplicationConfig:
    """Test cases for ApplicationConfig."""

    def test_defaults(self) -> None:
        config = ApplicationConfig()

        assert config.upload.chunk_size == 5 * 1024 * 1024
        assert config.upload.persist_every_chunks == 5
        assert config.upload.retry.initial_delay == 2.0
        assert config.upload.retry.max_attempts is None
        assert config.drive.request_timeout == 300.0
        assert config.auth.provider == "static"
        assert config.server.port == 8765

    def test_from_dict_nested(self) -> None:
        config = ApplicationConfig.from_dict({
            'upload': {'chunk_size': 1024, 'retry': {'max_attempts': 3}},
            'server': {'port': 9000, 'cors_origins': ["http://localhost:3000"]},
        })

        assert config.upload.chunk_size == 1024
        assert config.upload.retry.max_attempts == 3
        assert config.server.cors_origins == ["http://localhost:3000"]

    def test_unknown_key_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ApplicationConfig.from_dict({'upload': {'chunk_sizes': 1}})

    @pytest.mark.parametrize("data", [
        {'upload': {'chunk_size': 0}},
        {'upload': {'persist_every_chunks': 0}},
        {'upload': {'retry': {'initial_delay': -1}}},
        {'upload': {'retry': {'backoff_factor': 0.5}}},
        {'drive': {'request_timeout': 0}},
        {'server': {'port': 70000}},
    ])
    def test_invalid_values(self, data: Dict[str, Any]) -> None:
        with pytest.raises(ConfigurationError):
            ApplicationConfig.from_dict(data)

    def test_retry_policy(self) -> None:
        policy = RetryConfig(initial_delay=1.0, backoff_factor=2.0, max_attempts=4).to_policy()

        assert policy.delay_for(3) == 4.0
        assert policy.exhausted(5)

    def test_to_dict(self) -> None:
        config = ApplicationConfig(upload=UploadConfig(chunk_size=2048))

        data = config.to_dict()

        assert data['upload']['chunk_size'] == 2048
        assert data['upload']['retry']['initial_delay'] == 2.0


class TestConfigLoader:
    """Test cases for ConfigLoader."""

    @pytest.fixture
    def config_loader(self) -> ConfigLoader:
        return ConfigLoader()

    @pytest.fixture
    def sample_config_dict(self) -> Dict[str, Any]:
        return {
            'environment': "testing",
            'drive': {'upload_url': "http://localhost:9999/upload"},
            'upload': {'chunk_size': 262144, 'default_folder_id': "root-folder"},
            'auth': {'provider': "file", 'token_file': "/tmp/token"},
            'logging': {'level': "DEBUG", 'file_enabled': False},
        }

    def test_load_yaml(self, config_loader: ConfigLoader, tmp_path: Path,
                       sample_config_dict: Dict[str, Any]) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict))

        config = config_loader.load_config(str(path))

        assert config.environment == "testing"
        assert config.drive.upload_url == "http://localhost:9999/upload"
        assert config.upload.chunk_size == 262144
        assert config.auth.provider == "file"
        assert config.config_file_path == str(path)

    def test_load_json(self, config_loader: ConfigLoader, tmp_path: Path,
                       sample_config_dict: Dict[str, Any]) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict))

        config = config_loader.load_config(str(path))

        assert config.upload.default_folder_id == "root-folder"
        assert config.logging.level == "DEBUG"

    def test_empty_yaml_gives_defaults(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("")

        assert config_loader.load_config(str(path)).upload.chunk_size == 5 * 1024 * 1024

    def test_missing_file(self, config_loader: ConfigLoader) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            config_loader.load_config("/nonexistent/config.yaml")

    def test_unsupported_format(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            config_loader.load_config(str(path))

    def test_invalid_json(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{broken")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            config_loader.load_config(str(path))

    def test_environment_overrides_file(self, config_loader: ConfigLoader, tmp_path: Path,
                                        sample_config_dict: Dict[str, Any]) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict))
        env = {
            'RDRIVE_CHUNK_SIZE': "1048576",
            'RDRIVE_AUTH_TOKEN': "from-env",
            'RDRIVE_DEBUG': "yes",
            'RDRIVE_RETRY_MAX_ATTEMPTS': "7",
        }

        with patch.dict('os.environ', env):
            config = config_loader.load_config(str(path))

        assert config.upload.chunk_size == 1048576
        assert config.upload.default_folder_id == "root-folder"
        assert config.upload.retry.max_attempts == 7
        assert config.auth.token == "from-env"
        assert config.debug is True

    def test_invalid_environment_value(self, config_loader: ConfigLoader) -> None:
        with patch.dict('os.environ', {'RDRIVE_PORT': "not-a-port"}):
            with pytest.raises(ConfigurationError, match="RDRIVE_PORT"):
                config_loader.load_config()

    def test_custom_prefix(self) -> None:
        with patch.dict('os.environ', {'UPLOADER_HOST': "0.0.0.0"}):
            config = ConfigLoader(env_prefix="UPLOADER_").load_config()

        assert config.server.host == "0.0.0.0"

    @pytest.mark.parametrize("fmt,suffix", [("yaml", ".yaml"), ("json", ".json")])
    def test_save_and_reload(self, config_loader: ConfigLoader, tmp_path: Path,
                             fmt: str, suffix: str) -> None:
        path = tmp_path / f"saved{suffix}"
        original = ApplicationConfig.from_dict({'upload': {'chunk_size': 4096}})

        config_loader.save_config(original, str(path), format=fmt)
        reloaded = config_loader.load_config(str(path))

        assert reloaded.upload.chunk_size == 4096
        assert reloaded.to_dict()['upload'] == original.to_dict()['upload']

    def test_save_unsupported_format(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            config_loader.save_config(ApplicationConfig(), str(tmp_path / "c.ini"), format="ini")
