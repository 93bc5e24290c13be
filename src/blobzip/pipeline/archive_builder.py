"""Packs staged resources into a single ZIP archive."""

from __future__ import annotations

import zipfile
from typing import TYPE_CHECKING

from blobzip.errors import ArchiveWriteFailedError, PipelineCancelledError
from blobzip.logging import logger
from blobzip.streams import DEFAULT_CHUNK_SIZE, copy_stream

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from blobzip.cancellation import CancellationToken
    from blobzip.pipeline.transient_registry import TransientRegistry
    from blobzip.resources import StagedResource

ARCHIVE_LABEL = "<archive>"

# Entries are written through a stream, so zipfile cannot size them up front. Anything
# close to the 32-bit limit is written with ZIP64 headers straight away.
ZIP64_THRESHOLD = 1 << 30


class ArchiveBuilder:
    """
    Builds the archive of a run from the merged stream of staged resources.

    The builder is the single consumer of the stream and the only user of the ZIP writer.
    Each staged file is released as soon as it has been copied into the archive, whether
    the copy succeeded or not.
    """

    def __init__(
        self,
        registry: TransientRegistry,
        compression: int = zipfile.ZIP_DEFLATED,
        compresslevel: int | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the ArchiveBuilder.

        :param registry: The registry owning the transient files of the run. The archive
            itself is allocated from it too.
        :param compression: The zipfile compression method for the entries.
        :param compresslevel: The compression level, or None for the method's default.
        :param chunk_size: The number of bytes to copy between cancellation checks.
        """
        self.registry = registry
        self.compression = compression
        self.compresslevel = compresslevel
        self.chunk_size = chunk_size

    def build(
        self,
        staged_resources: Iterable[StagedResource],
        cancellation: CancellationToken,
    ) -> Path:
        """
        Write every staged resource into a new archive.

        :param staged_resources: The stream of staged resources, consumed sequentially.
        :param cancellation: The token of the run.
        :return: The local path of the finished archive. It is owned by the registry.
        :raises ArchiveWriteFailedError: If the archive or one of its entries cannot be
            written. The offending entry name is attached.
        :raises PipelineCancelledError: If the run is cancelled while building.
        """
        try:
            archive_path = self.registry.allocate(suffix=".zip")
        except OSError as exc:
            raise ArchiveWriteFailedError(ARCHIVE_LABEL, exc) from exc

        logger.info(f"Building archive at {archive_path}")
        written: set[str] = set()
        try:
            with zipfile.ZipFile(
                archive_path,
                "w",
                compression=self.compression,
                compresslevel=self.compresslevel,
            ) as archive:
                for staged in staged_resources:
                    self._add_entry(archive, staged, written, cancellation)
        except OSError as exc:
            raise ArchiveWriteFailedError(ARCHIVE_LABEL, exc) from exc

        logger.info(f"Archive {archive_path} finished with {len(written)} distinct entries")
        return archive_path

    def _add_entry(
        self,
        archive: zipfile.ZipFile,
        staged: StagedResource,
        written: set[str],
        cancellation: CancellationToken,
    ) -> None:
        local_path = staged.local_path
        if local_path is None:
            # Only a failed upstream stage produces such an item.
            msg = "the resource has no staged local file"
            raise ArchiveWriteFailedError(staged.archive_path, ValueError(msg))

        if staged.archive_path in written:
            logger.warning(
                f"Archive entry '{staged.archive_path}' written more than once, "
                "the last copy wins",
            )

        try:
            size = local_path.stat().st_size
            with (
                local_path.open("rb") as source,
                archive.open(
                    staged.archive_path,
                    "w",
                    force_zip64=size >= ZIP64_THRESHOLD,
                ) as entry,
            ):
                copy_stream(source, entry, cancellation, self.chunk_size)
        except PipelineCancelledError:
            raise
        except (OSError, ValueError, zipfile.LargeZipFile) as exc:
            raise ArchiveWriteFailedError(staged.archive_path, exc) from exc
        finally:
            self.registry.release(local_path)

        written.add(staged.archive_path)
        logger.debug(f"Added {staged.source} to the archive as '{staged.archive_path}'")
