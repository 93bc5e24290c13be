"""Tracks the transient local files owned by a single pipeline run."""

from __future__ import annotations

import os
import re
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from blobzip.errors import ResourceCleanupFailedError
from blobzip.logging import logger

if TYPE_CHECKING:
    from types import TracebackType

TRANSIENT_PREFIX = "blobzip-"

_UNSAFE_SUFFIX_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class TransientRegistry:
    """
    A synchronized registry of the transient files created during a run.

    Files are registered when they are allocated and removed at most once, either when a
    stage releases them or when the registry is closed. Closing the registry is the single
    cleanup point of a run: it runs on every exit path when the registry is used as a
    context manager.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        """
        Initialize the TransientRegistry.

        :param directory: The directory to create transient files in. Defaults to the
            system temporary directory.
        """
        self.directory = str(directory) if directory else None
        self._lock = threading.Lock()
        self._paths: set[Path] = set()
        self._cleanup_failures: list[ResourceCleanupFailedError] = []

    def allocate(self, suffix: str = "") -> Path:
        """
        Create a new, uniquely named, empty transient file owned by this registry.

        :param suffix: A hint appended to the file name to make it recognisable.
        :return: The path of the new file.
        :raises OSError: If the file cannot be created.
        """
        safe_suffix = _UNSAFE_SUFFIX_CHARS.sub("_", suffix)
        fd, name = tempfile.mkstemp(
            prefix=TRANSIENT_PREFIX,
            suffix=safe_suffix,
            dir=self.directory,
        )
        os.close(fd)
        path = Path(name)
        with self._lock:
            self._paths.add(path)
        return path

    def release(self, path: Path) -> ResourceCleanupFailedError | None:
        """
        Remove a transient file if this registry still owns it.

        Releasing a path that was already released does nothing.

        :param path: The path to remove.
        :return: The cleanup failure, if the file could not be removed.
        """
        with self._lock:
            if path not in self._paths:
                return None
            self._paths.remove(path)

        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            failure = ResourceCleanupFailedError(path, exc)
            logger.warning(str(failure))
            with self._lock:
                self._cleanup_failures.append(failure)
            return failure

        logger.debug(f"Removed transient file {path}")
        return None

    def release_all(self) -> list[ResourceCleanupFailedError]:
        """
        Remove every transient file still owned by this registry.

        :return: Every cleanup failure seen over the lifetime of the registry.
        """
        with self._lock:
            remaining = list(self._paths)

        if remaining:
            logger.debug(f"Removing {len(remaining)} remaining transient files")
        for path in remaining:
            self.release(path)

        with self._lock:
            return list(self._cleanup_failures)

    @property
    def owned_paths(self) -> set[Path]:
        """Get a snapshot of the paths currently awaiting cleanup."""
        with self._lock:
            return set(self._paths)

    def __enter__(self) -> TransientRegistry:
        """Open the registry as the scoped cleanup block of a run."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """
        Release every remaining transient file.

        Cleanup failures never replace an error in flight; they are attached to it as notes.
        """
        failures = self.release_all()
        if failures and exc_value is not None:
            for failure in failures:
                exc_value.add_note(str(failure))
