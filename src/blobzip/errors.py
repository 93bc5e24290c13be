"""Errors raised by the archive pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from blobzip.resources import ObjectRef


class PipelineError(Exception):
    """Base class for every error raised by a pipeline run."""


class RetrievalFailedError(PipelineError):
    """
    Exception raised when a source object could not be retrieved to local storage.

    This covers both the allocation of the transient file and the download itself.
    """

    def __init__(self, object_ref: ObjectRef, cause: BaseException) -> None:
        """
        Initialize the RetrievalFailedError.

        :param object_ref: The object that could not be retrieved.
        :param cause: The underlying error.
        """
        super().__init__(f"Failed to retrieve {object_ref}: {cause}")
        self.object_ref = object_ref
        self.cause = cause


class ArchiveWriteFailedError(PipelineError):
    """Exception raised when an entry could not be written into the archive."""

    def __init__(self, archive_path: str, cause: BaseException) -> None:
        """
        Initialize the ArchiveWriteFailedError.

        :param archive_path: The entry name that could not be written.
        :param cause: The underlying error.
        """
        super().__init__(f"Failed to write archive entry '{archive_path}': {cause}")
        self.archive_path = archive_path
        self.cause = cause


class UploadFailedError(PipelineError):
    """Exception raised when the finished archive could not be published."""

    def __init__(self, object_ref: ObjectRef, cause: BaseException) -> None:
        """
        Initialize the UploadFailedError.

        :param object_ref: The destination object.
        :param cause: The underlying error.
        """
        super().__init__(f"Failed to upload archive to {object_ref}: {cause}")
        self.object_ref = object_ref
        self.cause = cause


class ResourceCleanupFailedError(PipelineError):
    """
    Exception describing a transient file that could not be removed.

    It is never raised over another error; it is logged and attached to the primary error
    so orphaned temporary storage stays observable.
    """

    def __init__(self, path: Path, cause: BaseException) -> None:
        """
        Initialize the ResourceCleanupFailedError.

        :param path: The transient file that could not be removed.
        :param cause: The underlying error.
        """
        super().__init__(f"Failed to remove transient file {path}: {cause}")
        self.path = path
        self.cause = cause


class PipelineCancelledError(PipelineError):
    """Exception raised at a suspension point once the run has been cancelled."""

    def __init__(self, message: str = "Pipeline run was cancelled") -> None:
        """
        Initialize the PipelineCancelledError with a message.

        :param message: The error message to be displayed.
        """
        super().__init__(message)


class DeadlineExceededError(PipelineCancelledError):
    """Exception raised when the run did not complete before its deadline."""
