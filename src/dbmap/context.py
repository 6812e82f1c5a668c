"""
Cancellation context shared by one call.

A context is a cancellation boundary: a thread-safe event plus an optional
deadline. Child contexts observe their parent's cancellation, so cancelling
the context passed to ``q`` aborts an in-progress retry loop and every
post-processing task derived from it.

Usage:
    ctx = with_timeout(background(), 5)
    rows, err = q(ctx, conn, 'SELECT * FROM users')
"""
import threading
import time

from dbmap.exceptions import QueryCancelled


class Context:
    """Cancellation boundary for a single call."""

    def __init__(self, parent: 'Context | None' = None, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._children: list[Context] = []
        self.parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        if parent is not None:
            parent._attach(self)

    def _attach(self, child: 'Context') -> None:
        with self._lock:
            cancelled = self._event.is_set()
            if not cancelled:
                self._children.append(child)
        if cancelled:
            child.cancel(self._reason)

    def cancel(self, reason: str | None = None) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason or 'context cancelled'
            self._event.set()
            children, self._children = self._children, []
        for child in children:
            child.cancel(self._reason)

    def cancelled(self) -> bool:
        """Return True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel('context deadline exceeded')
            return True
        return False

    def err(self) -> QueryCancelled | None:
        """Return the cancellation error, or None while the context is live."""
        if not self.cancelled():
            return None
        return QueryCancelled(self._reason)

    def check(self) -> None:
        """Raise QueryCancelled if the context is no longer live."""
        err = self.err()
        if err is not None:
            raise err

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block for up to ``timeout`` seconds or until cancelled.

        Returns True if the context was cancelled while waiting.
        """
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        if self._event.wait(timeout):
            return True
        return self.cancelled()


def background() -> Context:
    """Return a fresh root context that is never cancelled on its own."""
    return Context()


def with_cancel(parent: Context) -> Context:
    """Derive a child context that can be cancelled independently."""
    return Context(parent)


def with_timeout(parent: Context, seconds: float) -> Context:
    """Derive a child context cancelled after ``seconds``."""
    return Context(parent, deadline=time.monotonic() + seconds)
