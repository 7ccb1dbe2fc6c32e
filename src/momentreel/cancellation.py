"""Cooperative cancellation shared by every stage of a run.

One token is created per run and threaded through the merger, compositor,
assembler and orchestrator. It is safe to trip from any thread.
"""

import asyncio
import threading

from .errors import ExportCancelled


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()
        self.completed = 0

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ExportCancelled carrying the number of finished items."""
        if self._event.is_set():
            raise ExportCancelled(self.completed)

    async def checkpoint(self) -> None:
        """Yield to the event loop, then check for cancellation."""
        await asyncio.sleep(0)
        self.raise_if_cancelled()
