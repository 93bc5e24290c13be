from io import BytesIO

import pytest

from blobzip.cancellation import CancellationToken
from blobzip.errors import PipelineCancelledError
from blobzip.streams import copy_stream


def test__copy_stream__multiple_chunks__copies_every_byte() -> None:
    data = bytes(range(256)) * 10
    destination = BytesIO()

    copied = copy_stream(BytesIO(data), destination, CancellationToken(), chunk_size=7)

    assert copied == len(data)
    assert destination.getvalue() == data


def test__copy_stream__empty_source__copies_nothing() -> None:
    destination = BytesIO()

    assert copy_stream(BytesIO(b""), destination, CancellationToken()) == 0
    assert destination.getvalue() == b""


def test__copy_stream__cancelled_token__raises_before_copying() -> None:
    token = CancellationToken()
    token.cancel()
    destination = BytesIO()

    with pytest.raises(PipelineCancelledError):
        copy_stream(BytesIO(b"data"), destination, token)

    assert destination.getvalue() == b""


def test__copy_stream__cancelled_mid_copy__stops_after_current_chunk() -> None:
    token = CancellationToken()

    class _CancellingDestination(BytesIO):
        def write(self, data):  # noqa: ANN001, ANN202
            written = super().write(data)
            token.cancel()
            return written

    destination = _CancellingDestination()

    with pytest.raises(PipelineCancelledError):
        copy_stream(BytesIO(b"abcdefgh"), destination, token, chunk_size=2)

    assert destination.getvalue() == b"ab"
