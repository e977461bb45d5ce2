"""Cancellation and deadline propagation for blocking operations."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .exceptions import BumpkitTimeoutError

# Upper bound for a single wait slice so parent cancellation is noticed.
_POLL_INTERVAL = 0.1


class Context:
    """Carries a cancellation flag and an optional deadline.

    Every blocking call in bumpkit accepts a ``Context``. Child contexts
    created with :meth:`with_timeout` observe their parent's cancellation
    and never outlive the parent's deadline.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        parent: Optional["Context"] = None,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        deadline: Optional[float] = None
        if timeout is not None and timeout > 0:
            deadline = time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            deadline = (
                parent.deadline if deadline is None else min(deadline, parent.deadline)
            )
        self.deadline = deadline

    def with_timeout(self, timeout: Optional[float]) -> "Context":
        return Context(timeout=timeout, parent=self)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, operation: str = "operation") -> None:
        """Raise ``BumpkitTimeoutError`` if cancelled or past the deadline."""
        if self.cancelled:
            raise BumpkitTimeoutError(f"{operation} cancelled")
        if self.expired():
            raise BumpkitTimeoutError(f"{operation} deadline exceeded")

    def sleep(self, seconds: float, operation: str = "wait") -> None:
        """Sleep for ``seconds`` unless cancelled or the deadline comes first."""
        self.check(operation)
        end = time.monotonic() + max(0.0, seconds)
        while True:
            now = time.monotonic()
            if now >= end:
                return
            if self.deadline is not None and self.deadline <= now:
                raise BumpkitTimeoutError(f"{operation} deadline exceeded")
            wait_for = min(end - now, _POLL_INTERVAL)
            if self.deadline is not None:
                wait_for = min(wait_for, max(0.0, self.deadline - now))
            if self._event.wait(wait_for):
                raise BumpkitTimeoutError(f"{operation} cancelled")
            if self._parent is not None and self._parent.cancelled:
                raise BumpkitTimeoutError(f"{operation} cancelled")


def background() -> Context:
    """Return a fresh context without deadline."""
    return Context()
