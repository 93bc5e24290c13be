"""Validates the resources requested for an archive before any download starts."""

from collections import Counter
from collections.abc import Collection

from blobzip.logging import logger
from blobzip.resources import ObjectRef, ResourceDescriptor


def validate_resources(resources: Collection[ResourceDescriptor]) -> None:
    """
    Perform a preliminary check on the requested resources.

    Duplicate archive paths are allowed, the archive then holds the copy written last, but
    they are reported as they are rarely intended.

    :param resources: The resources requested for the archive.
    :raises ValueError: If a resource has no usable archive path or source.
    """
    for resource in resources:
        _validate_single_resource(resource)

    duplicates = sorted(
        path
        for path, count in Counter(resource.archive_path for resource in resources).items()
        if count > 1
    )
    if duplicates:
        logger.warning(
            f"Duplicate archive paths requested, the last written copy wins: {duplicates}",
        )


def _validate_single_resource(resource: ResourceDescriptor) -> None:
    _assert(
        isinstance(resource, ResourceDescriptor),
        f"Expected a ResourceDescriptor, but found {type(resource).__name__}.",
    )
    _assert(
        isinstance(resource.source, ObjectRef),
        f"Expected an ObjectRef source for '{resource.archive_path}', "
        f"but found {type(resource.source).__name__}.",
    )
    _assert(
        isinstance(resource.archive_path, str) and resource.archive_path.strip("/") != "",
        f"Archive path of {resource.source} must be a non-empty path.",
    )
    _assert(
        bool(resource.source.bucket) and bool(resource.source.key),
        f"Source of '{resource.archive_path}' must have both a bucket and a key.",
    )


# We use this assert because asserts are stripped out in optimised runs,
# and we want to ensure that the validation logic is always executed.
def _assert(condition: bool, message: str) -> None:  # noqa: FBT001
    """
    Assert that a condition is true, otherwise raise a ValueError with the given message.

    :param condition: The condition to check.
    :param message: The message to include in the ValueError if the condition is false.
    :raises ValueError: If the condition is false.
    """
    if not condition:
        raise ValueError(message)
