import json
from unittest.mock import ANY, create_autospec

import pytest

from blobzip.errors import RetrievalFailedError
from blobzip.pipeline.archive_pipeline import ArchivePipeline
from blobzip.resources import ObjectRef, ResourceDescriptor
from blobzip.run.zip_objects import _main

REQUEST = {
    "object": {"bucket": "bucket2", "key": "out.zip"},
    "resources": [
        {"object": {"bucket": "bucket1", "key": "a.txt"}, "file_name": "a.txt"},
    ],
}


@pytest.fixture
def archive_pipeline():
    return create_autospec(ArchivePipeline, instance=True)


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(json.dumps(REQUEST), encoding="utf-8")
    return path


def test__main__valid_request__runs_pipeline_and_returns_zero(
    archive_pipeline, request_file
) -> None:
    exit_code = _main(str(request_file), archive_pipeline=archive_pipeline, timeout_seconds=5.0)

    assert exit_code == 0
    archive_pipeline.do.assert_called_once_with(
        ObjectRef("bucket2", "out.zip"),
        [ResourceDescriptor(ObjectRef("bucket1", "a.txt"), "a.txt")],
        ANY,
    )


def test__main__malformed_request__returns_one_without_running(
    archive_pipeline, tmp_path
) -> None:
    request_file = tmp_path / "request.json"
    request_file.write_text('{"object": {"bucket": "bucket2"}}', encoding="utf-8")

    exit_code = _main(str(request_file), archive_pipeline=archive_pipeline, timeout_seconds=5.0)

    assert exit_code == 1
    archive_pipeline.do.assert_not_called()


def test__main__missing_request_file__returns_one(archive_pipeline, tmp_path) -> None:
    exit_code = _main(
        str(tmp_path / "nope.json"),
        archive_pipeline=archive_pipeline,
        timeout_seconds=5.0,
    )

    assert exit_code == 1
    archive_pipeline.do.assert_not_called()


def test__main__invalid_resources__returns_one(archive_pipeline, request_file) -> None:
    archive_pipeline.do.side_effect = ValueError("Archive path of resource 0 is empty.")

    exit_code = _main(str(request_file), archive_pipeline=archive_pipeline, timeout_seconds=5.0)

    assert exit_code == 1


def test__main__pipeline_fails__returns_one(archive_pipeline, request_file) -> None:
    archive_pipeline.do.side_effect = RetrievalFailedError(
        ObjectRef("bucket1", "a.txt"),
        PermissionError("denied"),
    )

    exit_code = _main(str(request_file), archive_pipeline=archive_pipeline, timeout_seconds=5.0)

    assert exit_code == 1
