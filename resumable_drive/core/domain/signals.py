"""
Cooperative stop signal shared by a state machine and its transfer engine.
"""

import asyncio
from enum import Enum
from typing import Optional


class StopReason(Enum):
    """Why a running transfer was asked to stop."""
    PAUSE = "pause"
    CANCEL = "cancel"


class TransferSignal:
    """
    Flag checked by the engine before every chunk and every retry.

    A cancel request always wins over a pause request.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[StopReason] = None

    @property
    def reason(self) -> Optional[StopReason]:
        return self._reason

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def request_pause(self) -> None:
        if self._reason is None:
            self._reason = StopReason.PAUSE
        self._event.set()

    def request_cancel(self) -> None:
        self._reason = StopReason.CANCEL
        self._event.set()

    def clear(self) -> None:
        self._reason = None
        self._event.clear()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until a stop is requested.

        Returns:
            True if a stop was requested before the timeout elapsed
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False
