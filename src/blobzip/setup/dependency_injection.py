"""A module for setting up blobzip using Dependency Injection."""

from __future__ import annotations

from dependency_injector import containers, providers
from gcsfs import GCSFileSystem

from blobzip.logging import logger
from blobzip.pipeline.archive_pipeline import DEFAULT_CONCURRENCY, ArchivePipeline
from blobzip.storage.storage_client import FilesystemStorageClient

DEFAULT_TIMEOUT_SECONDS = 90.0


class BlobzipContainer(containers.DeclarativeContainer):
    """
    Dependency Injection container for blobzip.

    This container manages the configuration and the collaborators of the archive pipeline.
    """

    config = providers.Configuration(strict=True)

    gcs_filesystem: providers.Provider[GCSFileSystem] = providers.Singleton(
        GCSFileSystem,
        project=config.gcp.gcp_project,
    )

    storage_client = providers.Singleton(
        FilesystemStorageClient,
        filesystem=gcs_filesystem,
    )

    archive_pipeline = providers.Singleton(
        ArchivePipeline,
        storage_client=storage_client,
        concurrency=config.concurrency,
        temp_dir=config.temp_dir,
    )


def init_dependencies_from_env() -> BlobzipContainer:
    """
    Create a container instance with configuration loaded from environment variables.

    Returns:
        BlobzipContainer: An instance of the container with configuration set.

    """
    container = BlobzipContainer()

    container.config.gcp.gcp_project.from_env("GCP_PROJECT")

    container.config.concurrency.from_env("CONCURRENCY", as_=int, default=DEFAULT_CONCURRENCY)
    container.config.temp_dir.from_env("TEMP_DIR", default="")
    container.config.timeout_seconds.from_env(
        "TIMEOUT_SECONDS",
        as_=float,
        default=DEFAULT_TIMEOUT_SECONDS,
    )

    logger.debug(
        f"Configured with {container.config.concurrency()} download workers and "
        f"a {container.config.timeout_seconds()}s timeout",
    )

    return container
