"""
Configuration models and data structures.

This module defines the configuration models used throughout the application,
providing type safety and validation for configuration values.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ...core.domain.uploads import DEFAULT_CHUNK_SIZE
from ...core.exceptions import ConfigurationError
from ..services.upload.engine import RetryPolicy
from ..services.upload.negotiator import DEFAULT_UPLOAD_URL


@dataclass
class DriveConfig:
    """Remote resumable-upload API settings."""
    upload_url: str = DEFAULT_UPLOAD_URL
    request_timeout: Optional[float] = 300.0


@dataclass
class RetryConfig:
    """Retry schedule for failed chunk requests."""
    initial_delay: float = 2.0
    backoff_factor: float = 1.0
    max_delay: float = 60.0
    max_attempts: Optional[int] = None

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            initial_delay=self.initial_delay,
            backoff_factor=self.backoff_factor,
            max_delay=self.max_delay,
            max_attempts=self.max_attempts,
        )


@dataclass
class UploadConfig:
    """Upload defaults."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    default_folder_id: Optional[str] = None
    persist_every_chunks: int = 5
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class StorageConfig:
    """Snapshot storage settings."""
    snapshot_path: str = "data/uploads.json"


@dataclass
class AuthConfig:
    """Token provider settings."""
    provider: str = "static"
    token: Optional[str] = None
    token_file: Optional[str] = None
    token_command: Optional[str] = None
    command_timeout: float = 30.0


@dataclass
class ServerConfig:
    """HTTP command surface settings."""
    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = True


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Resumable Drive"
    version: str = "0.1.0"
    debug: bool = False
    environment: str = "production"

    drive: DriveConfig = field(default_factory=DriveConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if self.upload.chunk_size <= 0:
            raise ConfigurationError(
                f"Chunk size must be positive, got {self.upload.chunk_size}")

        if self.upload.persist_every_chunks <= 0:
            raise ConfigurationError(
                f"persist_every_chunks must be positive, got {self.upload.persist_every_chunks}")

        retry = self.upload.retry
        if retry.initial_delay < 0 or retry.max_delay < 0:
            raise ConfigurationError("Retry delays cannot be negative")
        if retry.backoff_factor < 1:
            raise ConfigurationError(
                f"Retry backoff factor must be at least 1, got {retry.backoff_factor}")
        if retry.max_attempts is not None and retry.max_attempts < 0:
            raise ConfigurationError("Retry max_attempts cannot be negative")

        if self.drive.request_timeout is not None and self.drive.request_timeout <= 0:
            raise ConfigurationError(
                f"Request timeout must be positive, got {self.drive.request_timeout}")

        if not (1 <= self.server.port <= 65535):
            raise ConfigurationError(
                f"Server port must be between 1 and 65535, got {self.server.port}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        try:
            upload_data = dict(data.get('upload', {}))
            retry_config = RetryConfig(**upload_data.pop('retry', {}))
            upload_config = UploadConfig(retry=retry_config, **upload_data)

            return cls(
                name=data.get('name', 'Resumable Drive'),
                version=data.get('version', '0.1.0'),
                debug=data.get('debug', False),
                environment=data.get('environment', 'production'),
                drive=DriveConfig(**data.get('drive', {})),
                upload=upload_config,
                storage=StorageConfig(**data.get('storage', {})),
                auth=AuthConfig(**data.get('auth', {})),
                server=ServerConfig(**data.get('server', {})),
                logging=LoggingConfig(**data.get('logging', {})),
                config_file_path=data.get('config_file_path'),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
