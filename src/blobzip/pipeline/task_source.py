"""Hands out the resources of a run to the download workers."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from blobzip.cancellation import CancellationToken
    from blobzip.resources import ResourceDescriptor


class TaskSource:
    """
    A single producer of resource descriptors shared by every download worker.

    Each descriptor is handed out exactly once, in input order, however many workers pull
    from the source concurrently. Workers pull one descriptor at a time, so a worker only
    claims new work once it has handed its previous result downstream.
    """

    def __init__(
        self,
        descriptors: Iterable[ResourceDescriptor],
        cancellation: CancellationToken,
    ) -> None:
        """
        Initialize the TaskSource.

        :param descriptors: The descriptors to hand out, in order.
        :param cancellation: The token of the run; once cancelled no more work is handed out.
        """
        self._descriptors = list(descriptors)
        self._cancellation = cancellation
        self._lock = threading.Lock()
        self._next_index = 0

    def next_task(self) -> ResourceDescriptor | None:
        """
        Claim the next descriptor.

        :return: The next descriptor, or None once every descriptor has been claimed.
        :raises PipelineCancelledError: If the run has been cancelled.
        """
        self._cancellation.raise_if_cancelled()
        with self._lock:
            if self._next_index >= len(self._descriptors):
                return None
            descriptor = self._descriptors[self._next_index]
            self._next_index += 1
            return descriptor

    @property
    def claimed(self) -> int:
        """Get the number of descriptors handed out so far."""
        with self._lock:
            return self._next_index

    def __len__(self) -> int:
        """Get the total number of descriptors."""
        return len(self._descriptors)
