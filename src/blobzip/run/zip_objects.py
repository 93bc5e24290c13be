"""
Runner to archive blob store objects described by a JSON archive request.

Usage: ``python -m blobzip.run.zip_objects <request.json>``, or ``-`` to read the request
from stdin.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dependency_injector.wiring import Provide, inject

from blobzip.cancellation import CancellationToken
from blobzip.errors import PipelineError
from blobzip.logging import logger
from blobzip.request import load_archive_request
from blobzip.setup.dependency_injection import BlobzipContainer, init_dependencies_from_env

if TYPE_CHECKING:
    from blobzip.pipeline.archive_pipeline import ArchivePipeline
    from blobzip.request import ArchiveRequest


def _read_request(request_location: str) -> ArchiveRequest:
    if request_location == "-":
        logger.info("Reading archive request from stdin")
        return load_archive_request(sys.stdin)

    logger.info(f"Reading archive request from {request_location}")
    with Path(request_location).open(encoding="utf-8") as stream:
        return load_archive_request(stream)


@inject
def _main(
    request_location: str,
    archive_pipeline: ArchivePipeline = Provide[BlobzipContainer.archive_pipeline],
    timeout_seconds: float = Provide[BlobzipContainer.config.timeout_seconds],
) -> int:
    try:
        request = _read_request(request_location)
    except (OSError, ValueError):
        logger.exception(f"Failed to read archive request from {request_location}")
        return 1

    with CancellationToken.with_timeout(timeout_seconds) as cancellation:
        try:
            archive_pipeline.do(request.destination, request.resources, cancellation)
        except (PipelineError, ValueError):
            logger.exception(f"Failed to publish archive to {request.destination}")
            return 1

    logger.info(f"Archive available at {request.destination}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:  # noqa: PLR2004
        logger.error("Expected exactly one argument: the archive request path, or '-'")
        sys.exit(2)

    container = init_dependencies_from_env()
    container.wire(modules=[__name__])
    sys.exit(_main(sys.argv[1]))
