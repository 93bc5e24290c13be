import pytest

from blobzip.pipeline.archive_pipeline import ArchivePipeline
from blobzip.setup.dependency_injection import DEFAULT_TIMEOUT_SECONDS, init_dependencies_from_env


@pytest.fixture
def environment(monkeypatch):
    monkeypatch.setenv("GCP_PROJECT", "test-project")
    for name in ("CONCURRENCY", "TEMP_DIR", "TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test__init_dependencies_from_env__defaults__single_worker_and_default_timeout(
    environment,
) -> None:
    container = init_dependencies_from_env()

    assert container.config.concurrency() == 1
    assert container.config.timeout_seconds() == DEFAULT_TIMEOUT_SECONDS
    assert container.config.temp_dir() == ""


def test__init_dependencies_from_env__overrides__read_from_environment(
    environment, tmp_path
) -> None:
    environment.setenv("CONCURRENCY", "8")
    environment.setenv("TEMP_DIR", str(tmp_path))
    environment.setenv("TIMEOUT_SECONDS", "12.5")

    container = init_dependencies_from_env()

    assert container.config.concurrency() == 8
    assert container.config.temp_dir() == str(tmp_path)
    assert container.config.timeout_seconds() == 12.5


def test__archive_pipeline__configured__built_with_configured_concurrency(
    environment, tmp_path
) -> None:
    environment.setenv("CONCURRENCY", "3")
    container = init_dependencies_from_env()

    with container.gcs_filesystem.override(object()):
        pipeline = container.archive_pipeline()

    assert isinstance(pipeline, ArchivePipeline)
    assert pipeline.concurrency == 3


def test__init_dependencies_from_env__missing_project__raises(monkeypatch) -> None:
    monkeypatch.delenv("GCP_PROJECT", raising=False)

    with pytest.raises(ValueError):
        init_dependencies_from_env()
