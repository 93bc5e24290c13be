from unittest.mock import create_autospec

import pytest
from morefs.memory import MemFS

from blobzip.cancellation import CancellationToken
from blobzip.errors import PipelineCancelledError, UploadFailedError
from blobzip.pipeline.uploader import Uploader
from blobzip.resources import ObjectRef
from blobzip.storage.storage_client import FilesystemStorageClient, StorageClient

DESTINATION = ObjectRef("bucket2", "out.zip")


@pytest.fixture
def archive_file(tmp_path):
    path = tmp_path / "archive.zip"
    path.write_bytes(b"PK archive bytes")
    return path


def test__upload__archive__written_to_destination(archive_file) -> None:
    filesystem = MemFS()
    uploader = Uploader(FilesystemStorageClient(filesystem))

    uploader.upload(archive_file, DESTINATION, CancellationToken())

    assert filesystem.cat(DESTINATION.path) == b"PK archive bytes"


def test__upload__storage_fails__raises_upload_failed_with_destination(archive_file) -> None:
    storage_client = create_autospec(StorageClient, instance=True)
    storage_client.upload.side_effect = PermissionError("denied")

    with pytest.raises(UploadFailedError) as exc_info:
        Uploader(storage_client).upload(archive_file, DESTINATION, CancellationToken())

    assert exc_info.value.object_ref == DESTINATION
    assert isinstance(exc_info.value.__cause__, PermissionError)


def test__upload__archive_missing__raises_upload_failed(tmp_path) -> None:
    storage_client = create_autospec(StorageClient, instance=True)

    with pytest.raises(UploadFailedError):
        Uploader(storage_client).upload(tmp_path / "nope.zip", DESTINATION, CancellationToken())

    storage_client.upload.assert_not_called()


def test__upload__cancelled__raises_cancelled_untagged(archive_file) -> None:
    storage_client = create_autospec(StorageClient, instance=True)
    storage_client.upload.side_effect = PipelineCancelledError()

    with pytest.raises(PipelineCancelledError):
        Uploader(storage_client).upload(archive_file, DESTINATION, CancellationToken())
