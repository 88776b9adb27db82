from typing import TYPE_CHECKING, Any, Iterable, Tuple

from aiohttp import web
from multidict import CIMultiDict, CIMultiDictProxy

if TYPE_CHECKING:
    from social.graze.mockhttp.response import MockResponse


def headers_proxy(pairs: Iterable[Tuple[str, Any]]) -> CIMultiDictProxy[str]:
    """
    Build a read-only case-insensitive multidict from name/value pairs.

    List and tuple values become one entry per item, the way Set-Cookie is sent.
    """
    headers: CIMultiDict[str] = CIMultiDict()
    for name, value in pairs:
        if isinstance(value, (list, tuple)):
            for item in value:
                headers.add(name, str(item))
        elif value is not None:
            headers.add(name, str(value))
    return CIMultiDictProxy(headers)


def to_web_response(response: "MockResponse") -> web.Response:
    """
    Convert the recorded state of a MockResponse into an aiohttp web.Response.

    Useful for handing the outcome of connect-style middleware to aiohttp code, or for
    asserting on it with aiohttp's own accessors.
    """
    return web.Response(
        status=response.status_code or 200,
        reason=response.status_message or None,
        headers=headers_proxy(response.raw_headers.items()),
        body=response.body,
    )
