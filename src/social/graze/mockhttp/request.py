"""
Mock of a server-side incoming HTTP request.

MockRequest behaves like the request object a server hands to its middleware, apart from
reading from a socket: the body comes from an in-memory buffer and is served through the
readable byte source protocol, one slice per read. All header and metadata accessors can be
used to unit-test middleware without a listening server.

Test-only members that a real request does not have are set_buffer and has_timedout.
"""

import asyncio
from dataclasses import dataclass, replace
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from multidict import CIMultiDictProxy

from social.graze.mockhttp.adapters import headers_proxy
from social.graze.mockhttp.buffer import append
from social.graze.mockhttp.config import RequestOptions, Settings
from social.graze.mockhttp.streams import Hook, WritableByteSink, fire_hooks, pipe

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    remote_address: str
    remote_port: int


@dataclass
class SocketInfo:
    local_address: str
    local_port: int


class MockRequest:
    """
    In-memory incoming request implementing the readable byte source protocol.

    Body chunks are cut from the pending buffer no larger than the size asked for. When
    emit_close is configured, the close hooks fire as soon as that many bytes have been
    emitted; the rest of the body is discarded and the stream ends after the chunk that
    crossed the threshold.

    Hooks:
        on_close: fired when the close threshold is crossed
        on_end: fired once, when the end-of-stream marker is produced
    """

    def __init__(
        self,
        options: Union[str, RequestOptions, Dict[str, Any], None] = None,
        *,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> None:
        if settings is None:
            settings = Settings()
        options = RequestOptions.coerce(options, **kwargs)

        self.high_water_mark: int = options.high_water_mark or settings.high_water_mark
        self.url: str = options.url
        self.method: str = options.method
        self.headers: Dict[str, Any] = {}
        self.raw_headers: List[Any] = []
        self.trailers: Dict[str, Any] = dict(options.trailers)

        self._http_version = settings.http_version
        self.http_version_major = 1
        self.http_version_minor = 0
        self.set_http_version(options.http_version or settings.http_version)

        self.connection = ConnectionInfo(
            remote_address=settings.remote_address,
            remote_port=settings.remote_port,
        )
        if options.connection is not None:
            self.connection = replace(
                self.connection, **options.connection.model_dump(exclude_none=True)
            )
        self.socket = SocketInfo(
            local_address=self.connection.remote_address,
            local_port=self.connection.remote_port,
        )

        self.on_close: List[Hook] = []
        self.on_end: List[Hook] = []

        self._buffer: bytes = options.buffer or b""
        self._emitted = 0
        self._emit_close: Optional[int] = options.emit_close
        self._eof = False
        self._timed_out = False
        self._timer: Optional[asyncio.TimerHandle] = None

        if options.raw_headers is not None:
            for i in range(0, len(options.raw_headers), 2):
                self.set_header(options.raw_headers[i], options.raw_headers[i + 1])
        elif options.headers:
            for name, value in options.headers.items():
                self.set_header(name, value)

    def __repr__(self) -> str:
        return f"<MockRequest {self.method} {self.url}>"

    @property
    def http_version(self) -> str:
        return self._http_version

    def set_http_version(self, value: Optional[str]) -> None:
        """
        Store the protocol version and re-derive http_version_major/minor from it.

        Major and minor are only updated when the value is exactly two dot-separated
        integers; any other value is stored as-is and leaves them unchanged.
        """
        self._http_version = value or ""
        parts = self._http_version.split(".")
        if len(parts) != 2:
            return
        try:
            major, minor = int(parts[0]), int(parts[1])
        except ValueError:
            return
        self.http_version_major = major
        self.http_version_minor = minor

    # Readable byte source

    def _read(self, size: int) -> bytes:
        """
        Produce the next chunk of at most ``size`` bytes.

        Returns b"" once the pending body is exhausted; on_end fires the first time.
        """
        if not self._buffer:
            if not self._eof:
                self._eof = True
                logger.debug("%r reached end of stream after %d bytes", self, self._emitted)
                fire_hooks(self.on_end, "end")
            return b""

        if size <= 0 or size > len(self._buffer):
            size = len(self._buffer)
        chunk = self._buffer[:size]
        self._buffer = self._buffer[size:]
        self._emitted += len(chunk)

        if self._emit_close and self._emit_close <= self._emitted:
            logger.debug(
                "%r closing after %d bytes (threshold %d)",
                self,
                self._emitted,
                self._emit_close,
            )
            self._buffer = b""
            fire_hooks(self.on_close, "close")

        return chunk

    def at_eof(self) -> bool:
        return self._eof

    async def read(self, n: int = -1) -> bytes:
        """
        Read up to ``n`` bytes of the body, or everything that is left when ``n`` is negative.

        Each slice yields to the event loop first, so a body arrives chunk by chunk.
        """
        if n == 0:
            return b""
        if n > 0:
            await asyncio.sleep(0)
            return self._read(n)

        body = b""
        async for chunk in self.iter_chunked(self.high_water_mark):
            body += chunk
        return body

    async def readany(self) -> bytes:
        return await self.read(self.high_water_mark)

    async def iter_chunked(self, n: int) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(n)
            if not chunk:
                return
            yield chunk

    def iter_any(self) -> AsyncIterator[bytes]:
        return self.iter_chunked(self.high_water_mark)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_any()

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.read()).decode(encoding)

    async def json(self) -> Any:
        return json.loads(await self.text())

    async def pipe(self, sink: WritableByteSink, end: bool = True) -> WritableByteSink:
        """Stream the body into ``sink`` and end it afterwards unless ``end`` is false."""
        return await pipe(self, sink, end=end)

    # Request API

    def set_timeout(self, msecs: Optional[float], callback: Optional[Hook] = None) -> None:
        """
        Mark the request as timed out after ``msecs`` milliseconds and call ``callback``.

        A falsy ``msecs`` never times out. The body stream is left open either way.
        Must be called from a running event loop.
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

    def set_header(self, name: str, value: Any) -> None:
        self.headers[name.lower()] = value
        self.raw_headers.append(name)
        self.raw_headers.append(value)

    def get_header(self, name: str) -> Any:
        return self.headers.get(name.lower())

    def remove_header(self, name: str) -> None:
        lowered = name.lower()
        self.headers.pop(lowered, None)
        raw_headers = self.raw_headers
        self.raw_headers = []
        for i in range(0, len(raw_headers), 2):
            if raw_headers[i].lower() != lowered:
                self.raw_headers.append(raw_headers[i])
                self.raw_headers.append(raw_headers[i + 1])

    @property
    def multi_headers(self) -> CIMultiDictProxy[str]:
        """Case-insensitive multidict view of raw_headers, duplicates kept in order."""
        return headers_proxy(
            (self.raw_headers[i], self.raw_headers[i + 1])
            for i in range(0, len(self.raw_headers), 2)
        )

    def flush_headers(self) -> None:
        pass

    def set_no_delay(self, no_delay: bool = True) -> None:
        pass

    def set_socket_keep_alive(
        self, enable: bool = False, initial_delay: int = 0
    ) -> None:
        pass

    # Test only, not part of a real request

    def set_buffer(self, data: Union[bytes, str], encoding: Optional[str] = None) -> None:
        """Replace the pending body. Text is encoded with ``encoding`` (UTF-8 by default)."""
        self._buffer = append(b"", data, encoding)

    def has_timedout(self) -> bool:
        return self._timed_out
