from io import BytesIO

import pytest
from fsspec.implementations.local import LocalFileSystem

from blobzip.cancellation import CancellationToken
from blobzip.resources import ObjectRef
from blobzip.storage.storage_client import FilesystemStorageClient

pytestmark = pytest.mark.integration


def test__upload_then_download__local_filesystem__bytes_survive(tmp_path) -> None:
    filesystem = LocalFileSystem(auto_mkdir=True)
    client = FilesystemStorageClient(filesystem=filesystem, chunk_size=16)
    obj = ObjectRef(str(tmp_path / "bucket"), "nested/object.bin")
    content = bytes(range(256)) * 64

    client.upload(CancellationToken(), obj, BytesIO(content))
    downloaded = BytesIO()
    client.download(CancellationToken(), downloaded, obj)

    assert downloaded.getvalue() == content
    assert (tmp_path / "bucket" / "nested" / "object.bin").read_bytes() == content
