"""Publishes the finished archive to the blob store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blobzip.errors import PipelineCancelledError, UploadFailedError
from blobzip.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from blobzip.cancellation import CancellationToken
    from blobzip.resources import ObjectRef
    from blobzip.storage.storage_client import StorageClient


class Uploader:
    """Streams a local archive to its destination object."""

    def __init__(self, storage_client: StorageClient) -> None:
        """
        Initialize the Uploader.

        :param storage_client: The client to upload the archive with.
        """
        self.storage_client = storage_client

    def upload(
        self,
        archive_path: Path,
        destination: ObjectRef,
        cancellation: CancellationToken,
    ) -> None:
        """
        Upload the archive to the destination object.

        :param archive_path: The local path of the finished archive.
        :param destination: The object to write the archive to.
        :param cancellation: The token of the run.
        :raises UploadFailedError: If the archive cannot be read or written.
        :raises PipelineCancelledError: If the run is cancelled during the upload.
        """
        logger.info(f"Uploading archive {archive_path} to {destination}")
        try:
            with archive_path.open("rb") as source:
                self.storage_client.upload(cancellation, destination, source)
        except PipelineCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise UploadFailedError(destination, exc) from exc
        logger.info(f"Archive uploaded to {destination}")
