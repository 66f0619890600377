"""Cancellable timed suspension.

Every place the client waits (endpoint throttle, 429 backoff, upload
polling) sleeps through a Sleeper so another thread can cancel the wait.
"""

import logging
import threading

from chirpkit.domain.exceptions import OperationCancelled

logger = logging.getLogger(__name__)


class Sleeper:
    """Sleeps on a threading.Event that `cancel()` sets."""

    def __init__(self):
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Wakes every current and future sleeper with OperationCancelled until `reset()`."""
        logger.info("Cancellation requested; pending waits will abort.")
        self._cancelled.set()

    def reset(self) -> None:
        self._cancelled.clear()

    def sleep(self, seconds: float) -> None:
        """Suspends the calling thread for `seconds`.

        Raises:
            OperationCancelled: If cancelled before or during the wait, or
                interrupted with Ctrl-C.
        """
        if self._cancelled.is_set():
            raise OperationCancelled("Operation cancelled before waiting")
        if seconds <= 0:
            return
        try:
            interrupted = self._cancelled.wait(seconds)
        except KeyboardInterrupt as e:
            raise OperationCancelled(f"Interrupted during a {seconds:.3f}s wait") from e
        if interrupted:
            raise OperationCancelled(f"Cancelled during a {seconds:.3f}s wait")
