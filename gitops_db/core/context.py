"""
Caller-supplied cancellation / deadline token.

A QueryContext is created by the caller and handed to every query. The
query layer checks it before touching the store and registers an interrupt
callback for the duration of each in-flight statement.
"""

import threading
import time
from typing import Callable, Dict, Optional

from gitops_db.core.errors import Canceled


class QueryContext:
    """Cancellable context with an optional deadline."""

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: absolute time.monotonic() value after which the
                context counts as done. None means no deadline.
        """
        self._deadline = deadline
        self._cancelled = False
        self._reason: Optional[str] = None
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self._timer: Optional[threading.Timer] = None

    # -------------------------
    # CONSTRUCTORS
    # -------------------------

    @classmethod
    def background(cls) -> "QueryContext":
        """Context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "QueryContext":
        """
        Context that cancels itself `seconds` from now.

        Use as a context manager (or call close()) so the timer thread does
        not outlive the work it guards.
        """
        ctx = cls(deadline=time.monotonic() + seconds)
        timer = threading.Timer(max(seconds, 0.0), ctx._expire)
        timer.daemon = True
        ctx._timer = timer
        timer.start()
        return ctx

    # -------------------------
    # STATE
    # -------------------------

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        if self._cancelled:
            return self._reason
        if self.expired:
            return "deadline exceeded"
        return None

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self._cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        """Raise Canceled if the context is done."""
        if self._cancelled:
            raise Canceled(f"context canceled: {self._reason or 'cancel requested'}")
        if self.expired:
            raise Canceled("context deadline exceeded")

    # -------------------------
    # CANCELLATION
    # -------------------------

    def cancel(self, reason: str = "cancel requested") -> None:
        """Mark the context done and fire every registered interrupt."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()

        for callback in callbacks:
            callback()

    def _expire(self) -> None:
        self.cancel("deadline exceeded")

    def on_cancel(self, callback: Callable[[], None]) -> int:
        """
        Register an interrupt to run when the context is cancelled.

        Runs immediately if the context is already done. Returns a handle
        for remove_callback().
        """
        with self._lock:
            if not self._cancelled:
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback
                return handle

        callback()
        return -1

    def remove_callback(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    # -------------------------
    # LIFECYCLE
    # -------------------------

    def close(self) -> None:
        """
        Stop the deadline timer once the caller is done with the context.

        The deadline itself still counts for check() and done; only the
        background thread that would fire the interrupts goes away.
        """
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def __enter__(self) -> "QueryContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
