"""Cancellation signal shared by all suspension points of an upload.

The token combines an explicit abort (``cancel()``, usable from any
thread) with an optional deadline. Sleeps wait on a threading.Event, so
a cancel interrupts them immediately.
"""

from __future__ import annotations

import threading
import time

from tmpupload.client.upload.types import UploadCancelledError


class CancellationToken:
    """Abort flag with optional deadline."""

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the token.

        Args:
            timeout: Seconds from now after which the upload is cancelled.
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Check if cancelled or past the deadline."""
        return self._event.is_set() or self._expired()

    def _expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None without deadline."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def request_timeout(self, default: float) -> float:
        """Bound a request timeout by the time left before the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(min(default, remaining), 0.001)

    def raise_if_cancelled(self) -> None:
        """Raise UploadCancelledError if cancellation was requested.

        Raises:
            UploadCancelledError: If cancelled or past the deadline.
        """
        if self._event.is_set():
            raise UploadCancelledError("Upload cancelled")
        if self._expired():
            raise UploadCancelledError("Upload timed out")

    def wait(self, seconds: float) -> bool:
        """Wait up to ``seconds`` without raising.

        Returns:
            True if cancelled when the wait ends.
        """
        if seconds > 0 and not self.cancelled:
            remaining = self.remaining()
            self._event.wait(timeout=seconds if remaining is None else min(seconds, remaining))
        return self.cancelled

    def sleep(self, seconds: float) -> None:
        """Sleep, waking up early on cancellation.

        Raises:
            UploadCancelledError: If cancelled before or during the sleep.
        """
        self.raise_if_cancelled()
        if seconds > 0:
            remaining = self.remaining()
            wait = seconds if remaining is None else min(seconds, remaining)
            self._event.wait(timeout=wait)
        self.raise_if_cancelled()
