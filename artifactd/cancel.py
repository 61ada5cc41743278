"""Cancellation tokens threaded through network-bound collaborators."""

from __future__ import annotations

import threading
import time

from .errors import CancelledError


class CancelToken:
    """
    Advisory cancellation for one reconciliation call.

    A token carries an optional deadline and a flag the caller can raise from
    another thread. Long-running collaborators call check() between steps and
    use remaining() to bound their own socket timeouts.
    """

    def __init__(self, timeout_s: float | None = None):
        self._deadline = time.monotonic() + timeout_s if timeout_s is not None else None
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> CancelToken:
        """A token that never expires and is never cancelled by anyone else."""
        return cls()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self, default: float | None = None) -> float | None:
        """
        Seconds left before the deadline.

        Args:
            default: Returned when the token has no deadline.

        Returns:
            Remaining seconds (never negative), or `default` without a deadline.
        """
        if self._deadline is None:
            return default
        left = max(0.0, self._deadline - time.monotonic())
        if default is not None:
            return min(left, default)
        return left

    def check(self) -> None:
        """Raise CancelledError if the token was cancelled or has expired."""
        if self._cancelled.is_set():
            raise CancelledError("operation cancelled")
        if self.expired:
            raise CancelledError("operation deadline exceeded")
