"""
Command domain models for the message-style command surface.

A UI collaborator sends plain dictionaries such as
``{"action": "pauseUpload", "uploadId": "..."}``; they are parsed into
``UploadCommand`` objects and answered with a ``CommandResult``.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class CommandAction(Enum):
    """Actions understood by the command surface."""
    GET_UPLOADS = "getUploads"
    START_UPLOAD = "startUpload"
    PAUSE_UPLOAD = "pauseUpload"
    RESUME_UPLOAD = "resumeUpload"
    CANCEL_UPLOAD = "cancelUpload"
    CLEAR_FINISHED = "clearFinished"


@dataclass
class UploadCommand:
    """A parsed request from the UI collaborator."""

    action: CommandAction
    params: Dict[str, Any] = field(default_factory=dict)
    command_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_request(cls, request: Dict[str, Any]) -> 'UploadCommand':
        """
        Parse a raw request dictionary.

        Raises:
            ValueError: If the action is missing or unknown
        """
        action = request.get('action')
        if not action:
            raise ValueError("Request has no action")
        try:
            parsed = CommandAction(action)
        except ValueError:
            raise ValueError(f"Unknown action: {action}") from None

        params = {k: v for k, v in request.items() if k != 'action'}
        return cls(action=parsed, params=params)

    def require(self, name: str) -> Any:
        """Return a mandatory parameter, raising ValueError when absent."""
        value = self.params.get(name)
        if value is None or value == "":
            raise ValueError(f"Missing parameter '{name}' for {self.action.value}")
        return value


@dataclass
class CommandResult:
    """Outcome of a command, rendered either as payload or as error."""

    command_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, command_id: str, **payload: Any) -> 'CommandResult':
        return cls(command_id=command_id, payload=payload)

    @classmethod
    def failure(cls, command_id: str, error: str) -> 'CommandResult':
        return cls(command_id=command_id, error=error)

    def to_response(self) -> Dict[str, Any]:
        """Render as the wire payload: the success payload or ``{error}``."""
        if self.error is not None:
            return {'error': self.error}
        return dict(self.payload)
