"""Reads archive requests from their JSON representation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import IO, Any

from blobzip.resources import ObjectRef, ResourceDescriptor


class InvalidArchiveRequestError(ValueError):
    """Exception raised when an archive request document is malformed."""


@dataclass(frozen=True)
class ArchiveRequest:
    """A request to archive a set of resources into a destination object."""

    destination: ObjectRef
    """
    The object the archive will be written to.
    """
    resources: list[ResourceDescriptor]
    """
    The objects to archive, with their names inside the archive.
    """


def load_archive_request(stream: IO[str]) -> ArchiveRequest:
    """
    Read an archive request from a JSON text stream.

    :param stream: The stream holding the JSON document.
    :return: The parsed request.
    :raises InvalidArchiveRequestError: If the document is not valid JSON or is malformed.
    """
    try:
        payload = json.load(stream)
    except json.JSONDecodeError as exc:
        msg = f"Failed to decode archive request: {exc}"
        raise InvalidArchiveRequestError(msg) from exc
    return parse_archive_request(payload)


def parse_archive_request(payload: Any) -> ArchiveRequest:  # noqa: ANN401
    """
    Build an archive request from a decoded JSON document.

    The document has the form::

        {
            "object": {"bucket": "...", "key": "..."},
            "resources": [
                {"object": {"bucket": "...", "key": "..."}, "file_name": "..."}
            ]
        }

    :param payload: The decoded JSON document.
    :return: The parsed request.
    :raises InvalidArchiveRequestError: If a field is missing or has the wrong type.
    """
    _require_type(payload, dict, "request")
    destination = _parse_object(payload.get("object"), "object")

    resources_payload = payload.get("resources", [])
    _require_type(resources_payload, list, "resources")

    resources = [
        _parse_resource(resource, f"resources[{index}]")
        for index, resource in enumerate(resources_payload)
    ]
    return ArchiveRequest(destination=destination, resources=resources)


def _parse_resource(payload: Any, field: str) -> ResourceDescriptor:  # noqa: ANN401
    _require_type(payload, dict, field)
    source = _parse_object(payload.get("object"), f"{field}.object")
    file_name = _require_non_empty_str(payload.get("file_name"), f"{field}.file_name")
    return ResourceDescriptor(source=source, archive_path=file_name)


def _parse_object(payload: Any, field: str) -> ObjectRef:  # noqa: ANN401
    _require_type(payload, dict, field)
    return ObjectRef(
        bucket=_require_non_empty_str(payload.get("bucket"), f"{field}.bucket"),
        key=_require_non_empty_str(payload.get("key"), f"{field}.key"),
    )


def _require_non_empty_str(value: Any, field: str) -> str:  # noqa: ANN401
    _require_type(value, str, field)
    if not value:
        msg = f"Expected '{field}' to be a non-empty string."
        raise InvalidArchiveRequestError(msg)
    return value


def _require_type(value: Any, expected: type, field: str) -> None:  # noqa: ANN401
    if not isinstance(value, expected):
        msg = (
            f"Expected '{field}' to be of type {expected.__name__}, "
            f"but found {type(value).__name__}."
        )
        raise InvalidArchiveRequestError(msg)
