"""
Cooperative cancellation for batch runs.
"""

from __future__ import annotations

import asyncio


class CancelToken:
    """
    Shared flag polled by the batch pipeline.

    Setting it never interrupts an in-flight request; it stops the run
    before the next pool and wakes any pending inter-request delay.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """
        Wait up to `seconds`, returning early on cancellation.

        Returns:
            True if the wait ended because the token was cancelled.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
            return True
        except TimeoutError:
            return False
