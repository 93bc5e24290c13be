from concurrent.futures import ThreadPoolExecutor
from unittest.mock import create_autospec

import pytest
from assertpy import assert_that
from morefs.memory import MemFS

from blobzip.cancellation import CancellationToken
from blobzip.errors import PipelineCancelledError, RetrievalFailedError
from blobzip.pipeline.download_worker import DownloadWorkerPool
from blobzip.pipeline.fan_in import FanInMerger
from blobzip.pipeline.task_source import TaskSource
from blobzip.pipeline.transient_registry import TransientRegistry
from blobzip.resources import ObjectRef, ResourceDescriptor, StagedResource
from blobzip.storage.storage_client import FilesystemStorageClient, StorageClient


def _content_for(i: int) -> bytes:
    return f"content of object {i}\n".encode() * (i + 1)


@pytest.fixture
def descriptors():
    return [
        ResourceDescriptor(ObjectRef("bucket1", f"dir/object-{i}.txt"), f"out/object-{i}.txt")
        for i in range(10)
    ]


@pytest.fixture
def storage_client(descriptors):
    filesystem = MemFS()
    for i, descriptor in enumerate(descriptors):
        filesystem.pipe(descriptor.source.path, _content_for(i))
    return FilesystemStorageClient(filesystem=filesystem, chunk_size=8)


@pytest.fixture
def registry(tmp_path):
    return TransientRegistry(tmp_path)


def test__init__non_positive_concurrency__raises_value_error(storage_client, registry) -> None:
    with pytest.raises(ValueError):
        DownloadWorkerPool(storage_client, registry, concurrency=0)


def test__stage__existing_object__downloads_into_registered_file(
    storage_client, registry, descriptors
) -> None:
    pool = DownloadWorkerPool(storage_client, registry)

    staged = pool.stage(descriptors[3], CancellationToken())

    assert staged.descriptor == descriptors[3]
    assert staged.local_path is not None
    assert staged.local_path.read_bytes() == _content_for(3)
    assert staged.local_path.name.endswith("-object-3.txt")
    assert registry.owned_paths == {staged.local_path}


def test__stage__missing_object__raises_retrieval_failed_with_object_ref(
    storage_client, registry
) -> None:
    pool = DownloadWorkerPool(storage_client, registry)
    missing = ResourceDescriptor(ObjectRef("bucket1", "missing.txt"), "missing.txt")

    with pytest.raises(RetrievalFailedError) as exc_info:
        pool.stage(missing, CancellationToken())

    assert exc_info.value.object_ref == missing.source
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


def test__stage__allocation_fails__raises_retrieval_failed(storage_client, tmp_path) -> None:
    pool = DownloadWorkerPool(storage_client, TransientRegistry(tmp_path / "gone"))
    descriptor = ResourceDescriptor(ObjectRef("bucket1", "dir/object-0.txt"), "a.txt")

    with pytest.raises(RetrievalFailedError) as exc_info:
        pool.stage(descriptor, CancellationToken())

    assert isinstance(exc_info.value.cause, OSError)


def test__stage__cancelled__raises_cancelled_not_retrieval_failed(
    storage_client, registry, descriptors
) -> None:
    pool = DownloadWorkerPool(storage_client, registry)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(PipelineCancelledError):
        pool.stage(descriptors[0], token)


def _run_pool(pool, descriptors, token):  # noqa: ANN001, ANN202
    source = TaskSource(descriptors, token)
    merger: FanInMerger[StagedResource] = FanInMerger(pool.concurrency, token)
    with ThreadPoolExecutor(max_workers=pool.concurrency) as executor:
        futures = pool.start(executor, source, merger, token)
        received = []
        try:
            received.extend(merger)
        except PipelineCancelledError:
            pass
    return futures, received


@pytest.mark.parametrize("concurrency", [1, 3, 10])
def test__start__all_objects_exist__stages_every_descriptor_once(
    storage_client, registry, descriptors, concurrency
) -> None:
    pool = DownloadWorkerPool(storage_client, registry, concurrency=concurrency)

    futures, received = _run_pool(pool, descriptors, CancellationToken())

    assert_that([staged.descriptor for staged in received]).contains_only(*descriptors)
    assert sum(future.result() for future in futures) == len(descriptors)
    for staged in received:
        i = descriptors.index(staged.descriptor)
        assert staged.local_path.read_bytes() == _content_for(i)


def test__start__one_download_fails__cancels_run_and_reports_failure(
    registry, descriptors
) -> None:
    failing_client = create_autospec(StorageClient, instance=True)
    failing_source = descriptors[4].source

    def _download(cancellation, destination, obj) -> None:  # noqa: ANN001
        if obj == failing_source:
            raise PermissionError("denied")
        destination.write(b"ok")

    failing_client.download.side_effect = _download
    pool = DownloadWorkerPool(failing_client, registry, concurrency=3)
    token = CancellationToken()

    futures, _ = _run_pool(pool, descriptors, token)

    assert token.cancelled
    assert isinstance(token.reason, RetrievalFailedError)
    assert token.reason.object_ref == failing_source
    failures = [future.exception() for future in futures if future.exception() is not None]
    assert failures == [token.reason]


def test__start__run_cancelled__workers_exit_without_error(
    storage_client, registry, descriptors
) -> None:
    pool = DownloadWorkerPool(storage_client, registry, concurrency=4)
    token = CancellationToken()
    token.cancel()

    futures, received = _run_pool(pool, descriptors, token)

    assert received == []
    assert all(future.exception() is None for future in futures)
