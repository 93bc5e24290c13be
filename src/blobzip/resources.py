"""The objects that flow through the archive pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath


@dataclass(frozen=True)
class ObjectRef:
    """A location in the blob store, used both as a read source and as a write destination."""

    bucket: str
    """
    The container (bucket) holding the object.
    """
    key: str
    """
    The identifier of the object within the bucket.
    """

    @property
    def path(self) -> str:
        """
        Get the path of the object in the form used by fsspec filesystems.

        :return: The object path as ``<bucket>/<key>``.
        """
        return f"{self.bucket}/{self.key.lstrip('/')}"

    def __str__(self) -> str:
        """Render the object as ``<bucket>/<key>``."""
        return self.path


@dataclass(frozen=True)
class ResourceDescriptor:
    """A source object and the name it should have inside the archive."""

    source: ObjectRef
    """
    The object to retrieve.
    """
    archive_path: str
    """
    The slash-separated entry name of the object inside the archive.
    """

    @property
    def file_name(self) -> str:
        """
        Get the last segment of the archive path.

        :return: The base name of the archive entry.
        """
        return PurePosixPath(self.archive_path).name


@dataclass(frozen=True)
class StagedResource:
    """
    A resource whose bytes have been retrieved to a transient local file.

    The local file is owned by the pipeline run that created it and is removed once
    the archive builder consumed it, or when the run is torn down.
    """

    descriptor: ResourceDescriptor
    """
    The resource that was retrieved.
    """
    local_path: Path | None
    """
    The transient file holding the retrieved bytes. None when nothing was staged, which the
    archive builder rejects.
    """

    @property
    def source(self) -> ObjectRef:
        """Get the object the resource was retrieved from."""
        return self.descriptor.source

    @property
    def archive_path(self) -> str:
        """Get the entry name of the resource inside the archive."""
        return self.descriptor.archive_path
