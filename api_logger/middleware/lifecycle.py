"""
api-logger: Completion Guard
============================

What:  Runs a request's emission callback exactly once, no matter how many
       completion signals arrive.
How:   A single boolean flag, flipped synchronously *before* the callback is
       awaited. A second signal arriving while the first is still awaiting the
       IP lookup therefore sees the flag already set and returns immediately.

Signals:
    "finish"  the final response body message was handed to the server
    "close"   the connection ended abnormally (client disconnect, app
              exception, cancellation) or the app returned without finishing
"""

import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

FINISH = "finish"
CLOSE = "close"


class CompletionGuard:
    """
    One-shot wrapper around an async callback.

    Usage:
        guard = CompletionGuard(emit)
        await guard.fire(FINISH)   # runs emit()
        await guard.fire(CLOSE)    # no-op
    """

    def __init__(self, callback: Callable[[], Awaitable[None]]):
        self._callback = callback
        self.fired = False
        self.signal: Optional[str] = None

    def claim(self, signal: str) -> bool:
        """
        Flip the flag without running the callback.

        For paths that emit on their own: a cancelled task that cannot await,
        or a finished response whose record waits until the app returns.
        Returns False if an earlier signal already claimed completion.
        """
        if self.fired:
            logger.debug("Ignoring '%s' signal, already completed on '%s'", signal, self.signal)
            return False
        self.fired = True
        self.signal = signal
        return True

    async def fire(self, signal: str) -> bool:
        """
        Deliver a completion signal.

        Returns:
            True if this call ran the callback, False if an earlier signal did.
        """
        if not self.claim(signal):
            return False
        await self._callback()
        return True
