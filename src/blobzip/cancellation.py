"""A cancellation signal shared by every stage of a pipeline run."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from blobzip.errors import DeadlineExceededError, PipelineCancelledError
from blobzip.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType


class CancellationToken:
    """
    A thread-safe, one-shot cancellation signal.

    The first call to :meth:`cancel` wins: it records the reason and fires every registered
    callback exactly once. Blocking operations use the callbacks to wake up, and check
    :meth:`raise_if_cancelled` at each suspension point.

    A token may be derived from a parent token, in which case cancelling the parent cancels
    the child with the same reason, but not the other way around.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        """
        Initialize the CancellationToken.

        :param parent: An optional token whose cancellation propagates to this one.
        """
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: BaseException | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None
        self._detach_from_parent: Callable[[], None] | None = None

        if parent is not None:
            self._detach_from_parent = parent.on_cancel(
                lambda: self.cancel(parent.reason),
            )

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        parent: CancellationToken | None = None,
    ) -> CancellationToken:
        """
        Create a token that cancels itself once the deadline passes.

        :param seconds: The number of seconds until the deadline.
        :param parent: An optional parent token.
        :return: The new token. Call :meth:`close` to stop the deadline timer.
        """
        if seconds <= 0:
            msg = f"Timeout must be positive, got {seconds}."
            raise ValueError(msg)

        token = cls(parent=parent)
        timer = threading.Timer(
            seconds,
            token.cancel,
            args=(DeadlineExceededError(f"Deadline of {seconds}s exceeded"),),
        )
        timer.daemon = True
        timer.name = "cancellation-deadline"
        token._timer = timer
        timer.start()
        return token

    @property
    def cancelled(self) -> bool:
        """Check whether the token has been cancelled."""
        return self._event.is_set()

    @property
    def reason(self) -> BaseException | None:
        """Get the reason the token was first cancelled with, if any."""
        with self._lock:
            return self._reason

    def cancel(self, reason: BaseException | None = None) -> bool:
        """
        Cancel the token.

        :param reason: Why the token is cancelled. Defaults to a PipelineCancelledError.
        :return: True if this call cancelled the token, False if it was already cancelled.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason if reason is not None else PipelineCancelledError()
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        logger.debug(f"Cancellation requested: {self._reason}")
        # Callbacks run outside the lock as they may take other locks.
        for callback in callbacks:
            callback()
        return True

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback fired once when the token is cancelled.

        If the token is already cancelled the callback runs immediately.

        :param callback: The callback to register.
        :return: A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)

        callback()
        return lambda: None

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        """
        Raise if the token has been cancelled.

        :raises PipelineCancelledError: A fresh error chained to the cancellation reason,
            or a DeadlineExceededError if the deadline passed.
        """
        if not self._event.is_set():
            return

        reason = self.reason
        if isinstance(reason, PipelineCancelledError):
            raise type(reason)(str(reason)) from reason
        msg = f"Pipeline run was cancelled: {reason}"
        raise PipelineCancelledError(msg) from reason

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the token is cancelled or the timeout passes.

        :param timeout: The maximum number of seconds to wait.
        :return: True if the token is cancelled.
        """
        return self._event.wait(timeout)

    def close(self) -> None:
        """Stop the deadline timer and detach from the parent token."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._detach_from_parent is not None:
            self._detach_from_parent()
            self._detach_from_parent = None

    def __enter__(self) -> CancellationToken:
        """Use the token as a context manager that closes it on exit."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the token."""
        self.close()
