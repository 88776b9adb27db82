"""
Mock of a server-side outgoing HTTP response.

MockResponse behaves like the response object a server hands to its middleware, apart from
writing to a socket: every write lands in an in-memory buffer. The header, status and
trailer API follows a real response, including the rule that headers cannot be changed
once they have been sent.

States that a unit test usually wants to assert on:

    status_code     Status code, None until write_head, write_continue or end
    headers_sent    True once the headers are committed
    get_headers()   Response headers keyed by lowercase name
    trailers        Trailing headers accepted by add_trailers
    get_buffer()    Response body decoded as text
    has_ended()     True once end ran, or a timeout without callback expired
    has_timedout()  True once a timeout armed with set_timeout expired

get_buffer, has_ended, has_timedout, body and wait_finished are test-only and do not
exist on a real response.
"""

import asyncio
from email.utils import formatdate
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from social.graze.mockhttp.buffer import append, status_message
from social.graze.mockhttp.config import ResponseOptions, Settings
from social.graze.mockhttp.errors import HeaderMutationAfterSend
from social.graze.mockhttp.streams import Hook, fire_hooks

logger = logging.getLogger(__name__)


class MockResponse:
    """
    In-memory outgoing response implementing the writable byte sink protocol.

    Hooks:
        on_end: fired once per effective end, after the final write
        on_finish: fired after on_end, once the sink has flushed every write
        on_timeout: fired when a timeout armed with set_timeout expires
    """

    def __init__(
        self,
        options: Union[ResponseOptions, Dict[str, Any], None] = None,
        *,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> None:
        if settings is None:
            settings = Settings()
        options = ResponseOptions.coerce(options, **kwargs)

        self.high_water_mark: int = options.high_water_mark or settings.high_water_mark
        self.status_code: Optional[int] = None
        self.status_message: str = ""
        self.reason_phrase: Optional[str] = None
        self.headers_sent: bool = False
        self.send_date: bool = (
            settings.send_date if options.send_date is None else options.send_date
        )

        self.on_end: List[Hook] = []
        self.on_finish: List[Hook] = []
        self.on_timeout: List[Hook] = []
        if options.on_end is not None:
            self.on_end.append(options.on_end)
        if options.on_finish is not None:
            self.on_finish.append(options.on_finish)

        self._headers: Dict[str, Any] = {}
        self._raw_headers: Dict[str, Any] = {}
        self._trailers: Dict[str, Any] = {}
        self._buffer: bytes = b""
        self._ended = False
        self._finished = False
        self._timed_out = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._finished_event = asyncio.Event()

    def __repr__(self) -> str:
        return f"<MockResponse {self.status_code} {self.status_message!r}>"

    # Writable byte sink

    def write(
        self,
        data: Union[bytes, str],
        encoding: Optional[str] = None,
        callback: Optional[Hook] = None,
    ) -> bool:
        """
        Append ``data`` to the body and acknowledge the write right away.

        Returns False, leaving the body untouched, when the response already finished.
        """
        if self._finished:
            logger.warning("%r: write after end dropped", self)
            return False
        self._buffer = append(self._buffer, data, encoding)
        if callback is not None:
            callback()
        return True

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def end(
        self,
        data: Union[bytes, str, None] = None,
        encoding: Optional[str] = None,
        callback: Optional[Hook] = None,
    ) -> None:
        """
        Finish the response, writing ``data`` first when given.

        Commits the headers (status 200 unless set), cancels a pending timeout and fires
        on_end then on_finish. Does nothing when a timeout already ended the response, or
        when the response already finished.
        """
        if self._timed_out and self._ended:
            logger.debug("%r: end after timeout ignored, socket is gone", self)
            return
        if self._finished:
            logger.debug("%r: end called twice", self)
            return

        if self.send_date:
            self._store_header("Date", formatdate(usegmt=True))
        self._ended = True
        self.status_code = self.status_code or 200
        self.status_message = status_message(self.status_code)
        self.headers_sent = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if data is not None:
            self.write(data, encoding)

        fire_hooks(self.on_end, "end")
        self._finished = True
        self._finished_event.set()
        fire_hooks(self.on_finish, "finish")
        if callback is not None:
            callback()

    # Response API

    def write_continue(self) -> None:
        self.headers_sent = True
        self.status_code = 100
        self.status_message = status_message(self.status_code)

    def write_head(
        self,
        status_code: int,
        reason_phrase: Union[str, Mapping[str, Any], None] = None,
        headers: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Commit the status line and headers.

        ``reason_phrase`` may be left out and the headers passed in its place. A given
        reason phrase is kept on reason_phrase; status_message always follows the code.
        """
        if isinstance(reason_phrase, Mapping):
            headers = reason_phrase
            reason_phrase = None
        if reason_phrase:
            self.reason_phrase = reason_phrase
        for name, value in (headers or {}).items():
            self.set_header(name, value)
        self.status_code = status_code
        self.status_message = status_message(self.status_code)
        self.headers_sent = True

    def set_timeout(self, msecs: Optional[float], callback: Optional[Hook] = None) -> None:
        """
        Time the response out after ``msecs`` milliseconds.

        With a callback, the callback is responsible for calling end. Without one, the
        response is only marked as ended: headers are not committed and neither on_end nor
        on_finish fire. on_timeout hooks fire in both cases.
        A falsy ``msecs`` never times out. Must be called from a running event loop.
        """
        if not msecs:
            return
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(msecs / 1000, self._on_timeout, callback)

    def _on_timeout(self, callback: Optional[Hook]) -> None:
        self._timer = None
        self._timed_out = True
        logger.debug("%r timed out", self)
        if callback is not None:
            callback()
        else:
            self._ended = True
        fire_hooks(self.on_timeout, "timeout")

    def set_header(self, name: str, value: Any) -> None:
        if self.headers_sent:
            raise HeaderMutationAfterSend.set_header()
        self._store_header(name, value)

    def get_header(self, name: str) -> Any:
        return self._headers.get(name.lower())

    def get_headers(self) -> Dict[str, Any]:
        return dict(self._headers)

    def get_header_names(self) -> List[str]:
        return list(self._headers)

    def has_header(self, name: str) -> bool:
        return self._headers.get(name.lower()) is not None

    def remove_header(self, name: str) -> None:
        if self.headers_sent:
            raise HeaderMutationAfterSend.remove_header()
        lowered = name.lower()
        if lowered in self._headers:
            del self._headers[lowered]
            self._drop_raw_header(lowered)

    def _store_header(self, name: str, value: Any) -> None:
        lowered = name.lower()
        self._drop_raw_header(lowered)
        self._headers[lowered] = value
        self._raw_headers[name] = value

    def _drop_raw_header(self, lowered: str) -> None:
        for raw_name in [n for n in self._raw_headers if n.lower() == lowered]:
            del self._raw_headers[raw_name]

    @property
    def header_names(self) -> Dict[str, str]:
        """Lowercase header name to the casing it was last set with."""
        return {name.lower(): name for name in self._raw_headers}

    @property
    def raw_headers(self) -> Dict[str, Any]:
        return dict(self._raw_headers)

    @property
    def trailers(self) -> Dict[str, Any]:
        return dict(self._trailers)

    def add_trailers(
        self, headers: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]
    ) -> None:
        """Keep ``headers`` as trailers, provided a Trailer header announced them."""
        if not self._headers.get("trailer"):
            logger.debug("%r: no Trailer header set, trailers discarded", self)
            return
        if isinstance(headers, Mapping):
            headers = headers.items()
        for name, value in headers:
            self._trailers[name] = value

    # Test only, not part of a real response

    @property
    def body(self) -> bytes:
        return self._buffer

    def get_buffer(self, encoding: str = "utf-8") -> str:
        return self._buffer.decode(encoding)

    def has_ended(self) -> bool:
        return self._ended

    def has_timedout(self) -> bool:
        return self._timed_out

    async def wait_finished(self) -> None:
        await self._finished_event.wait()
