"""Cancellation tokens shared by HTTP calls, pipeline copies, and playback.

Responsibilities:
- Carry one deadline and one cancellation flag through an invocation.
- Run registered close callbacks exactly once when the token fires, so blocked
  network reads and pipes are released promptly.

Key types:
- `CancelToken`: deadline-bounded cancellation signal with close callbacks.
"""

from __future__ import annotations

import threading
from time import monotonic
from typing import Callable

from .errors import CancelledError, DeadlineExceededError


class CancelToken:
    """Deadline and cancellation signal for one command invocation.

    The token fires at most once, either via `cancel()` or when its deadline
    passes. Callbacks registered with `on_cancel` run on the firing thread.
    Child tokens fire with their parent and may carry a shorter deadline.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        *,
        parent: CancelToken | None = None,
    ) -> None:
        """Initialize the token and arm its deadline timer when a timeout is given."""

        self._lock = threading.Lock()
        self._fired = threading.Event()
        self._error: CancelledError | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None
        self._deadline: float | None = None
        self._parent = parent
        self._parent_unregister: Callable[[], None] | None = None

        if timeout_seconds is not None:
            self._deadline = monotonic() + max(0.0, timeout_seconds)
            self._timer = threading.Timer(max(0.0, timeout_seconds), self._expire)
            self._timer.daemon = True
            self._timer.start()
        if parent is not None:
            self._parent_unregister = parent.on_cancel(self._cancel_from_parent)

    def __enter__(self) -> CancelToken:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def child(self, timeout_seconds: float | None = None) -> CancelToken:
        """Return a token that fires with this one or after its own timeout."""

        return CancelToken(timeout_seconds, parent=self)

    @property
    def cancelled(self) -> bool:
        """Return whether the token has fired."""

        return self._fired.is_set()

    @property
    def error(self) -> CancelledError | None:
        """Return the error describing why the token fired, if it has."""

        return self._error

    def remaining(self) -> float | None:
        """Return seconds until the deadline, or `None` when there is none."""

        deadlines = []
        if self._deadline is not None:
            deadlines.append(self._deadline - monotonic())
        if self._parent is not None:
            parent_remaining = self._parent.remaining()
            if parent_remaining is not None:
                deadlines.append(parent_remaining)
        if not deadlines:
            return None
        return max(0.0, min(deadlines))

    def cancel(self, reason: str = "operation cancelled") -> None:
        """Fire the token with a cancellation error."""

        self._fire(CancelledError(reason))

    def raise_if_cancelled(self) -> None:
        """Raise the token's error when it has fired."""

        if self._error is not None:
            raise self._error

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning early with `True` if the token fires."""

        return self._fired.wait(seconds)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback and return a function that unregisters it.

        When the token has already fired the callback runs immediately.
        """

        with self._lock:
            if not self._fired.is_set():
                self._callbacks.append(callback)

                def _unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return _unregister
        callback()
        return lambda: None

    def close(self) -> None:
        """Stop the deadline timer and detach from the parent token."""

        if self._timer is not None:
            self._timer.cancel()
        if self._parent_unregister is not None:
            self._parent_unregister()
            self._parent_unregister = None

    def _expire(self) -> None:
        self._fire(DeadlineExceededError("deadline exceeded"))

    def _cancel_from_parent(self) -> None:
        parent_error = self._parent.error if self._parent is not None else None
        self._fire(parent_error or CancelledError("operation cancelled"))

    def _fire(self, error: CancelledError) -> None:
        with self._lock:
            if self._fired.is_set():
                return
            self._error = error
            self._fired.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        if self._timer is not None:
            self._timer.cancel()
        for callback in callbacks:
            callback()
