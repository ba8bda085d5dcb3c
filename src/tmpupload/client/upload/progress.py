"""Transfer progress and speed estimation.

This module provides:
- SpeedCalculator: exponentially smoothed upload rate in KB/s
- ProgressTracker: monotonic, clamped byte counter forwarding to a callback
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from tmpupload.client.upload.types import ProgressCallback

logger = logging.getLogger(__name__)

# Minimum seconds between two rate samples
SAMPLE_INTERVAL = 0.5
# Weight of the previous rate in the smoothed rate
SMOOTHING_FACTOR = 0.7
# Elapsed-time floor for the final rate of near-instant uploads
MIN_ELAPSED = 0.1


class SpeedCalculator:
    """Smoothed upload rate estimator.

    Rates are in KB/s. A new sample is taken at most every
    ``SAMPLE_INTERVAL`` seconds and blended with
    ``new = 0.7 * old + 0.3 * instantaneous``.
    """

    def __init__(
        self,
        total_bytes: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._total_bytes = total_bytes
        now = clock()
        self._start_time = now
        self._last_time = now
        self._last_bytes = 0
        self._current_speed = 0.0

    @property
    def current_speed(self) -> float:
        return self._current_speed

    def update(self, uploaded_bytes: int) -> float:
        """Record the byte counter and return the smoothed rate."""
        now = self._clock()
        elapsed = now - self._last_time
        if elapsed >= SAMPLE_INTERVAL:
            delta = uploaded_bytes - self._last_bytes
            if delta > 0:
                instant = delta / 1024.0 / elapsed
                if self._current_speed == 0:
                    self._current_speed = instant
                else:
                    self._current_speed = (
                        self._current_speed * SMOOTHING_FACTOR
                        + instant * (1 - SMOOTHING_FACTOR)
                    )
            self._last_time = now
            self._last_bytes = uploaded_bytes
        return self._current_speed

    def final_speed(self) -> float:
        """Return the rate to report once the upload finished.

        Uses the smoothed rate when one was sampled, otherwise the
        average over the whole session with the elapsed time floored at
        ``MIN_ELAPSED`` seconds.
        """
        if self._current_speed > 0:
            return self._current_speed
        elapsed = max(self._clock() - self._start_time, MIN_ELAPSED)
        if self._total_bytes <= 0:
            return 0.0
        return self._total_bytes / 1024.0 / elapsed


class ProgressTracker:
    """Monotonic byte counter for one upload session.

    Reports never go backwards, never exceed the file size and are not
    repeated, so the total is reported exactly once.
    """

    def __init__(self, total_bytes: int, callback: ProgressCallback | None = None) -> None:
        self._total = total_bytes
        self._callback = callback
        self._reported = 0
        self._started = False

    @property
    def reported(self) -> int:
        return self._reported

    @property
    def finished(self) -> bool:
        return self._started and self._reported >= self._total

    def report(self, uploaded_bytes: int) -> bool:
        """Forward a new byte count if it moves progress forward.

        Returns:
            True if the callback was invoked.
        """
        value = min(max(uploaded_bytes, 0), self._total)
        if self._started and value <= self._reported:
            return False
        if not self._started and value == 0 and self._total > 0:
            return False
        self._started = True
        self._reported = value
        if self._callback:
            self._callback(value, self._total)
        return True

    def advance(self, delta: int) -> bool:
        """Move the counter forward by ``delta`` bytes."""
        return self.report(self._reported + delta)

    def complete(self) -> bool:
        """Report the full size unless already reported."""
        if self.finished:
            return False
        self._started = True
        self._reported = self._total
        if self._callback:
            self._callback(self._total, self._total)
        return True
