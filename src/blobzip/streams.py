"""Chunked byte copying that can be interrupted between chunks."""

from __future__ import annotations

from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from blobzip.cancellation import CancellationToken

DEFAULT_CHUNK_SIZE = 1024 * 1024


def copy_stream(
    source: IO[bytes],
    destination: IO[bytes],
    cancellation: CancellationToken,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Copy every byte from the source to the destination.

    The cancellation token is checked before each chunk, so a cancelled run stops copying
    after at most one more chunk.

    :param source: The stream to read from.
    :param destination: The stream to write to.
    :param cancellation: The token of the run the copy belongs to.
    :param chunk_size: The number of bytes to read at a time.
    :return: The number of bytes copied.
    :raises PipelineCancelledError: If the run is cancelled during the copy.
    """
    copied = 0
    while True:
        cancellation.raise_if_cancelled()
        chunk = source.read(chunk_size)
        if not chunk:
            return copied
        destination.write(chunk)
        copied += len(chunk)
