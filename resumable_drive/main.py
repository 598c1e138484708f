"""
Main entry point for the Resumable Drive application.

This module provides the command-line interface: a long-running server
exposing the upload commands over HTTP, and one-shot commands operating
on the local upload snapshot.
"""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import aiohttp
import typer
import uvicorn

from .application.startup import ApplicationStartup
from .core.domain.events import Event, UploadEvents
from .core.domain.uploads import UploadRecord, UploadStatus
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.files.accessor import LocalFileAccessor
from .infrastructure.logging.setup import setup_logging
from .presentation.api.app import create_app

# Create CLI application
cli = typer.Typer(
    name="resumable-drive",
    help="Resumable chunked uploads with pause, resume and restart recovery"
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

SIZE_UNITS = ['Bytes', 'KB', 'MB', 'GB', 'TB']


def format_size(size_bytes: int) -> str:
    """Render a byte count as ``1.5 MB``."""
    if size_bytes == 0:
        return '0 Bytes'

    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(SIZE_UNITS) - 1:
        value /= 1024
        index += 1

    return f"{round(value, 2):g} {SIZE_UNITS[index]}"


def format_record(record: UploadRecord) -> str:
    line = (f"{record.upload_id}  {record.file.name}  [{record.status.value}]  "
            f"{format_size(record.uploaded_bytes)} / {format_size(record.size_bytes)} "
            f"({record.progress_percent:.1f}%)")
    if record.last_error:
        line += f"  error: {record.last_error}"
    return line


def load_config(config_file: Optional[str], log_level: Optional[str] = None,
                debug: bool = False) -> ApplicationConfig:
    """Load configuration, apply common overrides and set up logging."""
    config = ConfigLoader().load_config(config_file)

    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)
    return config


def run_with_registry(config: ApplicationConfig,
                      action: Callable[[ApplicationStartup], Awaitable[T]]) -> T:
    """Start the components, run ``action`` and always stop them again."""

    async def runner() -> T:
        async with ApplicationStartup(config) as startup:
            return await action(startup)

    return asyncio.run(runner())


@cli.command()
def serve(
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    host: Optional[str] = typer.Option(None, "--host", help="Server host address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode")
) -> None:
    """Run the upload service with its HTTP command surface."""
    config = load_config(config_file, log_level, debug)

    if host:
        config.server.host = host
    if port:
        config.server.port = port

    logger.info(f"Starting {config.name} v{config.version}")
    logger.info(f"Environment: {config.environment}")

    try:
        asyncio.run(run_application(config))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application failed to start: {e}")
        sys.exit(1)


@cli.command()
def upload(
    path: str = typer.Argument(..., help="File to upload"),
    folder_id: Optional[str] = typer.Option(None, "--folder", "-f", help="Destination folder ID"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Chunk size in bytes"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path")
) -> None:
    """Upload a file in the foreground. Ctrl+C pauses it for a later resume."""
    config = load_config(config_file)

    try:
        accessor = LocalFileAccessor(path)
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        sys.exit(1)

    async def action(startup: ApplicationStartup) -> Optional[UploadRecord]:
        await _echo_progress(startup)
        upload_id = await startup.registry.start_upload(
            accessor, folder_id=folder_id, chunk_size=chunk_size)
        typer.echo(f"Started upload {upload_id}")
        return await startup.registry.wait_for(upload_id)

    _finish_transfer(path, lambda: run_with_registry(config, action))


@cli.command()
def resume(
    upload_id: str = typer.Argument(..., help="Upload ID"),
    path: str = typer.Argument(..., help="The same file that was being uploaded"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path")
) -> None:
    """Resume a paused or interrupted upload in the foreground."""
    config = load_config(config_file)

    try:
        accessor = LocalFileAccessor(path)
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        sys.exit(1)

    async def action(startup: ApplicationStartup) -> Optional[UploadRecord]:
        await _echo_progress(startup)
        if not await startup.registry.resume_upload(upload_id, accessor):
            await accessor.close()
            record = startup.registry.get_upload(upload_id)
            if record is None:
                typer.echo(f"Upload {upload_id} not found", err=True)
            else:
                typer.echo(
                    f"Upload {upload_id} cannot be resumed ({record.status.value})", err=True)
            return None
        return await startup.registry.wait_for(upload_id)

    _finish_transfer(path, lambda: run_with_registry(config, action))


@cli.command()
def pause(
    upload_id: str = typer.Argument(..., help="Upload ID"),
    host: str = typer.Option("127.0.0.1", "--host", help="Server host"),
    port: int = typer.Option(8765, "--port", help="Server port")
) -> None:
    """Pause an upload running in a server started with ``serve``."""
    status_code, data = asyncio.run(
        _call_server("POST", f"http://{host}:{port}/api/uploads/{upload_id}/pause"))

    if status_code == 200 and data.get("success"):
        typer.echo(f"Paused upload {upload_id}")
    else:
        typer.echo(f"Could not pause {upload_id}: {data.get('detail', 'not uploading')}", err=True)
        sys.exit(1)


@cli.command()
def cancel(
    upload_id: str = typer.Argument(..., help="Upload ID"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path")
) -> None:
    """Cancel an upload, close its remote session and forget it."""
    config = load_config(config_file)

    async def action(startup: ApplicationStartup) -> bool:
        return await startup.registry.cancel_upload(upload_id)

    if not run_with_registry(config, action):
        typer.echo(f"Upload {upload_id} not found", err=True)
        sys.exit(1)
    typer.echo(f"Cancelled upload {upload_id}")


@cli.command("list")
def list_uploads(
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path")
) -> None:
    """List known uploads."""
    config = load_config(config_file)

    async def action(startup: ApplicationStartup) -> Any:
        return startup.registry.list_uploads()

    records = run_with_registry(config, action)
    if not records:
        typer.echo("No uploads")
        return
    for record in records:
        typer.echo(format_record(record))


@cli.command()
def clear(
    all_uploads: bool = typer.Option(
        False, "--all", help="Cancel every upload and delete the snapshot"),
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file path")
) -> None:
    """Remove finished uploads, or everything with --all."""
    config = load_config(config_file)

    async def action(startup: ApplicationStartup) -> int:
        if all_uploads:
            return await startup.registry.clear_all()
        return await startup.registry.clear_finished()

    removed = run_with_registry(config, action)
    typer.echo(f"Removed {removed} uploads")


@cli.command()
def init_config(
    output: str = typer.Option("config.yaml", "--output", "-o", help="Output configuration file"),
    format: str = typer.Option("yaml", "--format", "-f", help="Configuration format (yaml/json)")
) -> None:
    """Generate a default configuration file."""
    config = ApplicationConfig()

    try:
        ConfigLoader().save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except Exception as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""
    try:
        config = ConfigLoader().load_config(config_file)
        typer.echo(f"Configuration file {config_file} is valid")
        typer.echo(f"Application: {config.name} v{config.version}")
        typer.echo(f"Environment: {config.environment}")
    except Exception as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)


@cli.command()
def health_check(
    host: str = typer.Option("127.0.0.1", "--host", help="Server host"),
    port: int = typer.Option(8765, "--port", help="Server port"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout")
) -> None:
    """Check the health of a running server."""
    status_code, data = asyncio.run(
        _call_server("GET", f"http://{host}:{port}/health/", timeout=timeout))

    if status_code == 200:
        typer.echo(f"Server is healthy: {data.get('status', 'unknown')}")
    else:
        typer.echo(f"Health check failed: {data.get('detail', status_code)}", err=True)
        sys.exit(1)


async def run_application(config: ApplicationConfig) -> None:
    """
    Run the service with the given configuration.

    Args:
        config: Application configuration
    """
    startup = ApplicationStartup(config)

    try:
        await startup.start_application()

        app = create_app(startup, config)
        server_config = uvicorn.Config(
            app=app,
            host=config.server.host,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=config.debug
        )

        await uvicorn.Server(server_config).serve()

    except Exception as e:
        logger.error(f"Application error: {e}")
        raise
    finally:
        await startup.stop_application()


async def _call_server(method: str, url: str, timeout: float = 10.0) -> Tuple[int, Dict[str, Any]]:
    timeout_config = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=timeout_config) as session:
            async with session.request(method, url) as response:
                try:
                    data = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    data = {}
                return response.status, data
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return 0, {'detail': str(e) or e.__class__.__name__}


async def _echo_progress(startup: ApplicationStartup) -> None:
    async def on_update(event: Event) -> None:
        record = UploadRecord.from_dict(event.data)
        if record.status == UploadStatus.UPLOADING:
            typer.echo(
                f"  {format_size(record.uploaded_bytes)} / {format_size(record.size_bytes)} "
                f"({record.progress_percent:.1f}%)")

    await startup.notification_bus.subscribe(UploadEvents.UPDATED, on_update)


def _finish_transfer(path: str, transfer: Callable[[], Optional[UploadRecord]]) -> None:
    try:
        record = transfer()
    except KeyboardInterrupt:
        typer.echo("Upload paused; run 'resumable-drive list' to find it and resume it with "
                   f"'resumable-drive resume <id> {path}'")
        sys.exit(130)

    if record is None:
        sys.exit(1)

    typer.echo(format_record(record))
    if record.status != UploadStatus.COMPLETED:
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
