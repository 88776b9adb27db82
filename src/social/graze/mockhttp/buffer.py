from http import HTTPStatus
from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]


def append(
    buffer: Optional[bytes],
    data: Union[BytesLike, str, None],
    encoding: Optional[str] = None,
) -> bytes:
    """
    Append bytes or text to a byte buffer and return the new buffer.

    Text is encoded with ``encoding`` (UTF-8 by default). When ``data`` is None the
    buffer is returned unchanged.
    """
    if buffer is None:
        buffer = b""
    if data is None:
        return bytes(buffer)
    if isinstance(data, str):
        return bytes(buffer) + data.encode(encoding or "utf-8")
    return bytes(buffer) + bytes(data)


def status_message(status_code: Optional[int]) -> str:
    """Standard reason phrase for a status code, empty when the code is unknown."""
    if status_code is None:
        return ""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""
