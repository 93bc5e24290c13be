"""Downloads the resources of a run to transient local files."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blobzip.errors import PipelineCancelledError, RetrievalFailedError
from blobzip.logging import logger
from blobzip.resources import StagedResource

if TYPE_CHECKING:
    from concurrent.futures import Future, ThreadPoolExecutor

    from blobzip.cancellation import CancellationToken
    from blobzip.pipeline.fan_in import FanInMerger
    from blobzip.pipeline.task_source import TaskSource
    from blobzip.pipeline.transient_registry import TransientRegistry
    from blobzip.resources import ResourceDescriptor
    from blobzip.storage.storage_client import StorageClient


class DownloadWorkerPool:
    """
    A fixed number of identical workers downloading resources concurrently.

    Each worker pulls one descriptor at a time from the task source, downloads it into a
    transient file and hands the staged resource to the merger. A worker that fails cancels
    the run, which stops the other workers at their next suspension point.
    """

    def __init__(
        self,
        storage_client: StorageClient,
        registry: TransientRegistry,
        concurrency: int = 1,
    ) -> None:
        """
        Initialize the DownloadWorkerPool.

        :param storage_client: The client to download the objects with.
        :param registry: The registry owning the transient files of the run.
        :param concurrency: The number of workers.
        """
        if concurrency < 1:
            msg = f"Concurrency must be a positive integer, got {concurrency}."
            raise ValueError(msg)

        self.storage_client = storage_client
        self.registry = registry
        self.concurrency = concurrency

    def start(
        self,
        executor: ThreadPoolExecutor,
        source: TaskSource,
        merger: FanInMerger[StagedResource],
        cancellation: CancellationToken,
    ) -> list[Future[int]]:
        """
        Start every worker on the executor.

        :param executor: The executor to run the workers on. It needs at least
            ``concurrency`` threads for the workers to run concurrently.
        :param source: The source of descriptors shared by the workers.
        :param merger: The merger every worker sends its staged resources to. It must expect
            ``concurrency`` producers.
        :param cancellation: The token of the run.
        :return: One future per worker, resolving to the number of resources it staged.
        """
        logger.info(
            f"Starting {self.concurrency} download workers for {len(source)} resources",
        )
        return [
            executor.submit(self._run_worker, worker_id, source, merger, cancellation)
            for worker_id in range(self.concurrency)
        ]

    def _run_worker(
        self,
        worker_id: int,
        source: TaskSource,
        merger: FanInMerger[StagedResource],
        cancellation: CancellationToken,
    ) -> int:
        staged_count = 0
        try:
            while (descriptor := source.next_task()) is not None:
                staged = self.stage(descriptor, cancellation)
                merger.send(staged)
                staged_count += 1
        except PipelineCancelledError:
            logger.debug(
                f"Download worker {worker_id} stopping after {staged_count} resources, "
                "the run was cancelled",
            )
        except RetrievalFailedError as exc:
            logger.error(
                f"Download worker {worker_id} failed: {exc}",
                exc_info=True,
            )
            cancellation.cancel(exc)
            raise
        except BaseException as exc:
            cancellation.cancel(exc)
            raise
        else:
            logger.debug(f"Download worker {worker_id} finished after {staged_count} resources")
        finally:
            merger.producer_finished()

        return staged_count

    def stage(
        self,
        descriptor: ResourceDescriptor,
        cancellation: CancellationToken,
    ) -> StagedResource:
        """
        Download a single resource into a new transient file.

        :param descriptor: The resource to download.
        :param cancellation: The token of the run.
        :return: The staged resource pointing at the downloaded file.
        :raises RetrievalFailedError: If the transient file cannot be created or the
            download fails.
        :raises PipelineCancelledError: If the run is cancelled during the download.
        """
        try:
            local_path = self.registry.allocate(suffix=f"-{descriptor.file_name}")
        except OSError as exc:
            raise RetrievalFailedError(descriptor.source, exc) from exc

        try:
            with local_path.open("wb") as destination:
                self.storage_client.download(cancellation, destination, descriptor.source)
        except PipelineCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise RetrievalFailedError(descriptor.source, exc) from exc

        logger.debug(f"Staged {descriptor.source} as {local_path}")
        return StagedResource(descriptor=descriptor, local_path=local_path)
