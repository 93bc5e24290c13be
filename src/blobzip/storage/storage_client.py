"""Access to the blob store holding the source objects and the published archives."""

from __future__ import annotations

import threading
from typing import IO, TYPE_CHECKING, Protocol

from blobzip.logging import logger
from blobzip.streams import DEFAULT_CHUNK_SIZE, copy_stream

if TYPE_CHECKING:
    from fsspec import AbstractFileSystem

    from blobzip.cancellation import CancellationToken
    from blobzip.resources import ObjectRef


class StorageClient(Protocol):
    """
    Protocol for the blob store transport used by the pipeline.

    Implementations own retries and authentication. Errors are raised as-is; the pipeline
    only distinguishes success from failure and tags failures with the object involved.
    """

    def download(
        self,
        cancellation: CancellationToken,
        destination: IO[bytes],
        obj: ObjectRef,
    ) -> None:
        """Write the bytes of the object to the destination stream."""
        ...

    def upload(
        self,
        cancellation: CancellationToken,
        obj: ObjectRef,
        source: IO[bytes],
    ) -> None:
        """Write the bytes of the source stream to the object."""
        ...


class FilesystemStorageClient:
    """
    A StorageClient backed by an fsspec filesystem.

    Objects are addressed as ``<bucket>/<key>``, which is how object store filesystems such
    as GCSFileSystem lay out their paths.
    """

    def __init__(
        self,
        filesystem: AbstractFileSystem,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the FilesystemStorageClient.

        :param filesystem: The filesystem to use for reading and writing objects.
        :param chunk_size: The number of bytes to copy between cancellation checks.
        """
        self.filesystem = filesystem
        self.chunk_size = chunk_size
        self._upload_lock = threading.Lock()

    def download(
        self,
        cancellation: CancellationToken,
        destination: IO[bytes],
        obj: ObjectRef,
    ) -> None:
        """
        Stream the object into the destination.

        :param cancellation: The token of the run the download belongs to.
        :param destination: The stream to write the object's bytes to.
        :param obj: The object to download.
        """
        cancellation.raise_if_cancelled()
        logger.debug(f"Downloading {obj.path}")
        with self.filesystem.open(obj.path, "rb") as source:
            copied = copy_stream(source, destination, cancellation, self.chunk_size)
        logger.debug(f"Downloaded {copied} bytes from {obj.path}")

    def upload(
        self,
        cancellation: CancellationToken,
        obj: ObjectRef,
        source: IO[bytes],
    ) -> None:
        """
        Stream the source into the object, replacing it if it exists.

        The write happens in a filesystem transaction: it is only committed once every byte
        was copied, so an interrupted upload leaves the object as it was.

        :param cancellation: The token of the run the upload belongs to.
        :param obj: The object to write.
        :param source: The stream to read the bytes from.
        """
        cancellation.raise_if_cancelled()
        logger.debug(f"Uploading to {obj.path}")
        # The transaction state lives on the filesystem, so uploads must not overlap.
        with self._upload_lock, self.filesystem.transaction:
            with self.filesystem.open(obj.path, "wb") as destination:
                copied = copy_stream(source, destination, cancellation, self.chunk_size)
        logger.debug(f"Uploaded {copied} bytes to {obj.path}")
