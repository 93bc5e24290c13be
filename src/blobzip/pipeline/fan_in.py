"""Merges the output of the download workers into a single stream."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterator

    from blobzip.cancellation import CancellationToken

T = TypeVar("T")


class FanInMerger(Generic[T]):
    """
    A multi-producer, single-consumer rendezvous channel.

    Producers hand items over one at a time: :meth:`send` only returns once the consumer
    has taken the item, so a slow consumer throttles every producer. The stream ends once
    every producer has called :meth:`producer_finished`.

    Every wait observes the cancellation token of the run. Once it is cancelled, blocked
    producers and the consumer are woken up and raise, so nobody is left waiting on a peer
    that has gone away.
    """

    def __init__(self, producers: int, cancellation: CancellationToken) -> None:
        """
        Initialize the FanInMerger.

        :param producers: The number of producers that will send into the merger.
        :param cancellation: The token of the run.
        """
        if producers < 1:
            msg = f"A merger needs at least one producer, got {producers}."
            raise ValueError(msg)

        self._cancellation = cancellation
        self._condition = threading.Condition()
        self._active_producers = producers
        self._item: T | None = None
        self._has_item = False
        self._sent = 0
        self._taken = 0
        self._detach = cancellation.on_cancel(self._wake_all)

    def _wake_all(self) -> None:
        with self._condition:
            self._condition.notify_all()

    def send(self, item: T) -> None:
        """
        Hand an item to the consumer, blocking until it has been taken.

        :param item: The item to send.
        :raises PipelineCancelledError: If the run is cancelled before the item is taken.
            The item is then withdrawn and never delivered.
        """
        with self._condition:
            while self._has_item and not self._cancellation.cancelled:
                self._condition.wait()
            self._cancellation.raise_if_cancelled()

            self._item = item
            self._has_item = True
            self._sent += 1
            ticket = self._sent
            self._condition.notify_all()

            while self._taken < ticket and not self._cancellation.cancelled:
                self._condition.wait()

            if self._taken < ticket:
                self._item = None
                self._has_item = False
                self._condition.notify_all()
                self._cancellation.raise_if_cancelled()

    def receive(self) -> T | None:
        """
        Take the next item from any producer.

        :return: The next item, or None once every producer has finished.
        :raises PipelineCancelledError: If the run is cancelled.
        """
        with self._condition:
            while (
                not self._has_item
                and self._active_producers > 0
                and not self._cancellation.cancelled
            ):
                self._condition.wait()
            self._cancellation.raise_if_cancelled()

            if not self._has_item:
                return None

            item = self._item
            self._item = None
            self._has_item = False
            self._taken += 1
            self._condition.notify_all()
            return item

    def producer_finished(self) -> None:
        """Signal that one producer will not send any more items."""
        with self._condition:
            self._active_producers -= 1
            self._condition.notify_all()

    def close(self) -> None:
        """Stop listening to the cancellation token."""
        self._detach()

    def __iter__(self) -> Iterator[T]:
        """Iterate over the merged items until every producer has finished."""
        while (item := self.receive()) is not None:
            yield item
