"""Per-job pause/cancel token consulted by the engine at its checkpoints."""

import asyncio
import logging

from src.core.errors import ScanCancelled

logger = logging.getLogger(__name__)


class ScanToken:
    """Cooperative control handle for one scan run.

    The queue owns the token and flips its state; the engine only awaits
    checkpoint(). Nothing here interrupts a provider call already in flight.

    Usage::

        token = ScanToken()
        ...
        await token.checkpoint()  # waits while paused, raises if cancelled
    """

    def __init__(self) -> None:
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._cancelled = False

    @property
    def paused(self) -> bool:
        return not self._resumed.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def pause(self) -> None:
        if not self._cancelled:
            self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def cancel(self) -> None:
        self._cancelled = True
        # wake a paused checkpoint so it can observe the cancellation
        self._resumed.set()

    async def checkpoint(self) -> None:
        """Block while paused; raise ScanCancelled once cancelled."""
        if self._cancelled:
            raise ScanCancelled("scan cancelled")
        if not self._resumed.is_set():
            logger.debug("Checkpoint reached while paused - waiting for resume")
            await self._resumed.wait()
        if self._cancelled:
            raise ScanCancelled("scan cancelled")
