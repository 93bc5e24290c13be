"""Orchestrates a full run: download the resources, archive them and publish the archive."""

from __future__ import annotations

import zipfile
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from blobzip.cancellation import CancellationToken
from blobzip.errors import PipelineCancelledError, PipelineError
from blobzip.logging import logger
from blobzip.pipeline.archive_builder import ArchiveBuilder
from blobzip.pipeline.download_worker import DownloadWorkerPool
from blobzip.pipeline.fan_in import FanInMerger
from blobzip.pipeline.task_source import TaskSource
from blobzip.pipeline.transient_registry import TransientRegistry
from blobzip.pipeline.uploader import Uploader
from blobzip.pipeline.validate_resources import validate_resources

if TYPE_CHECKING:
    from collections.abc import Collection
    from concurrent.futures import Future
    from pathlib import Path

    from blobzip.resources import ObjectRef, ResourceDescriptor, StagedResource
    from blobzip.storage.storage_client import StorageClient

DEFAULT_CONCURRENCY = 1


class ArchivePipeline:
    """
    Packs blob store objects into a ZIP archive and publishes it to the blob store.

    A run fans the downloads out over ``concurrency`` worker threads, merges what they
    retrieve into a single stream and builds the archive from it on the calling thread,
    then uploads the archive. Every transient file of the run is removed before :meth:`do`
    returns, and no worker thread outlives the call.
    """

    def __init__(
        self,
        storage_client: StorageClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        temp_dir: str | None = None,
        compresslevel: int | None = None,
    ) -> None:
        """
        Initialize the ArchivePipeline.

        :param storage_client: The client used for both downloads and the upload.
        :param concurrency: The number of download workers, a positive integer.
        :param temp_dir: The directory for transient files, defaults to the system one.
        :param compresslevel: The deflate level of the archive entries.
        """
        if concurrency < 1:
            msg = f"Concurrency must be a positive integer, got {concurrency}."
            raise ValueError(msg)

        self.storage_client = storage_client
        self.concurrency = concurrency
        self.temp_dir = temp_dir
        self.compresslevel = compresslevel
        self.uploader = Uploader(storage_client)

    def do(
        self,
        destination: ObjectRef,
        resources: Collection[ResourceDescriptor],
        cancellation: CancellationToken | None = None,
    ) -> None:
        """
        Archive the resources and publish the archive to the destination.

        :param destination: The object the archive is written to.
        :param resources: The objects to archive and their names inside the archive.
        :param cancellation: An optional token to cancel the run, for example one with a
            deadline.
        :raises ValueError: If the resources are invalid. Nothing is downloaded.
        :raises RetrievalFailedError: If a source object could not be retrieved.
        :raises ArchiveWriteFailedError: If the archive could not be written.
        :raises UploadFailedError: If the archive could not be published.
        :raises PipelineCancelledError: If the run was cancelled or ran out of time.
        """
        resources = list(resources)
        validate_resources(resources)

        logger.info(
            f"Archiving {len(resources)} resources to {destination} "
            f"with {self.concurrency} download workers",
        )

        run_cancellation = CancellationToken(parent=cancellation)
        try:
            with TransientRegistry(self.temp_dir) as registry:
                primary_error: PipelineError | None = None
                try:
                    archive_path = self._assemble(resources, registry, run_cancellation)
                    self.uploader.upload(archive_path, destination, run_cancellation)
                except PipelineError as exc:
                    primary_error = _first_error(run_cancellation, exc)

                if primary_error is not None:
                    logger.error(f"Archiving to {destination} failed: {primary_error}")
                    raise primary_error
        finally:
            run_cancellation.close()

        logger.info(f"Archive of {len(resources)} resources published to {destination}")

    def _assemble(
        self,
        resources: list[ResourceDescriptor],
        registry: TransientRegistry,
        run_cancellation: CancellationToken,
    ) -> Path:
        source = TaskSource(resources, run_cancellation)
        merger: FanInMerger[StagedResource] = FanInMerger(self.concurrency, run_cancellation)
        pool = DownloadWorkerPool(self.storage_client, registry, self.concurrency)
        builder = ArchiveBuilder(
            registry,
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compresslevel,
        )

        futures: list[Future[int]] = []
        try:
            # Leaving the executor joins every worker, so none of them outlives the run.
            with ThreadPoolExecutor(
                max_workers=self.concurrency,
                thread_name_prefix="download-worker",
            ) as executor:
                futures = pool.start(executor, source, merger, run_cancellation)
                try:
                    return builder.build(merger, run_cancellation)
                except BaseException as exc:
                    # Unblocks the workers waiting to hand over their resources.
                    run_cancellation.cancel(exc)
                    raise
        finally:
            merger.close()
            _raise_unexpected_worker_failure(futures)


def _first_error(
    run_cancellation: CancellationToken,
    raised: PipelineError,
) -> PipelineError:
    """
    Pick the error to report for a failed run.

    A stage that fails cancels the run with its own error. Other stages then see the run as
    cancelled, so the cancellation reason, when it is a stage failure, is the first error.
    """
    reason = run_cancellation.reason
    if isinstance(reason, PipelineError) and not isinstance(reason, PipelineCancelledError):
        return reason
    return raised


def _raise_unexpected_worker_failure(futures: list[Future[int]]) -> None:
    """
    Re-raise the first worker failure that is not a pipeline error.

    Pipeline errors reach the caller through the run's cancellation reason. Anything else
    would only show up as the cause of a cancellation, so it is raised as is.
    """
    for future in futures:
        exc = future.exception()
        if exc is not None and not isinstance(exc, PipelineError):
            raise exc
