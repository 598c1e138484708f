"""
Token providers.

Acquiring tokens is owned by an external identity flow; these providers
only hand over whatever that flow left behind. ``None`` always means "no
token", which the upload engine treats as an authentication failure.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import List, Optional, Union

import aiofiles

from ...core.exceptions import ConfigurationError
from ...core.interfaces.upload import ITokenProvider
from ..config.models import AuthConfig

logger = logging.getLogger(__name__)


class StaticTokenProvider(ITokenProvider):
    """Returns a fixed token, typically from configuration."""

    def __init__(self, token: Optional[str]) -> None:
        self._token = token or None

    async def get_token(self, interactive: bool = False) -> Optional[str]:
        return self._token


class FileTokenProvider(ITokenProvider):
    """Reads the token from a file on every call so rotations are picked up."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    async def get_token(self, interactive: bool = False) -> Optional[str]:
        try:
            async with aiofiles.open(self._path, 'r', encoding='utf-8') as f:
                token = (await f.read()).strip()
        except OSError as e:
            logger.error(f"Auth error: cannot read token file {self._path}: {e}")
            return None
        return token or None


class CommandTokenProvider(ITokenProvider):
    """
    Runs an external command and uses its stdout as the token.

    Example: ``gcloud auth print-access-token``.
    """

    def __init__(self, command: Union[str, List[str]], timeout: float = 30.0) -> None:
        self._argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._argv:
            raise ConfigurationError("Token command cannot be empty")
        self._timeout = timeout

    async def get_token(self, interactive: bool = False) -> Optional[str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.error(f"Auth error: cannot run {self._argv[0]}: {e}")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.error(f"Auth error: token command timed out after {self._timeout}s")
            return None

        if process.returncode != 0:
            logger.error(
                f"Auth error: token command exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}")
            return None

        return stdout.decode().strip() or None


def create_token_provider(config: AuthConfig) -> ITokenProvider:
    """Build the provider selected by ``auth.provider``."""
    provider = config.provider.lower()

    if provider == "static":
        return StaticTokenProvider(config.token)
    if provider == "file":
        if not config.token_file:
            raise ConfigurationError("auth.token_file is required for the file provider")
        return FileTokenProvider(config.token_file)
    if provider == "command":
        if not config.token_command:
            raise ConfigurationError("auth.token_command is required for the command provider")
        return CommandTokenProvider(config.token_command, timeout=config.command_timeout)

    raise ConfigurationError(f"Unknown token provider: {config.provider}")
