"""Build-wide deadline threaded through every blocking call."""

from __future__ import annotations

import time

from nuclio_builder.errors import BuildTimeoutError


class Deadline:
    """Absolute deadline on the monotonic clock. ``None`` seconds means no limit."""

    def __init__(self, seconds: float | None = None) -> None:
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self, operation: str) -> None:
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise BuildTimeoutError(f"Build deadline of {self.seconds}s exceeded while {operation}")
