"""
Unit tests for social.graze.mockhttp.request

Tests cover construction from URL strings and option records, protocol version parsing,
header and raw header bookkeeping, chunked body reads including the close threshold,
piping into a response, and request timeouts.
"""

import asyncio
from unittest.mock import Mock

import pytest
from multidict import CIMultiDictProxy

from social.graze.mockhttp.config import RequestOptions, Settings
from social.graze.mockhttp.request import ConnectionInfo, MockRequest, SocketInfo
from social.graze.mockhttp.response import MockResponse

USER_AGENT = "Mozilla/5.0 (Awesome; rv:1.0)"
QUERY = "name=node&stream=version2"


class TestConstruction:
    """Test the defaults and the accepted option shapes."""

    def test_defaults(self):
        """A bare request is GET / over HTTP/1.0 from the loopback address."""
        req = MockRequest()
        assert req.url == "/"
        assert req.method == "GET"
        assert req.http_version == "1.0"
        assert req.http_version_major == 1
        assert req.http_version_minor == 0
        assert req.headers == {}
        assert req.raw_headers == []
        assert req.trailers == {}
        assert req.connection == ConnectionInfo(
            remote_address="127.0.0.1", remote_port=51501
        )
        assert req.socket == SocketInfo(local_address="127.0.0.1", local_port=51501)

    def test_url_string(self):
        """A bare string is shorthand for the url option."""
        req = MockRequest("/path/?kh=-1&q=node")
        assert req.url == "/path/?kh=-1&q=node"
        assert req.method == "GET"

    def test_options_mapping(self):
        """Headers given as a record are normalized and recorded raw."""
        req = MockRequest(
            {
                "url": "/path/?kh=-1&q=node",
                "method": "post",
                "headers": {"User-Agent": USER_AGENT},
            }
        )
        assert req.url == "/path/?kh=-1&q=node"
        assert req.method == "post"
        assert req.headers == {"user-agent": USER_AGENT}
        assert req.raw_headers == ["User-Agent", USER_AGENT]

    def test_options_record_and_keywords(self):
        """Keyword arguments overlay a RequestOptions record."""
        options = RequestOptions(url="/a", method="PUT")
        req = MockRequest(options, method="DELETE")
        assert req.url == "/a"
        assert req.method == "DELETE"

    def test_camel_case_aliases(self):
        """Option names of other stacks are accepted as aliases."""
        req = MockRequest(
            {"highWaterMark": 5, "httpVersion": "1.1", "emitClose": 3, "rawHeaders": []}
        )
        assert req.high_water_mark == 5
        assert req.http_version == "1.1"

    def test_raw_headers_round_trip(self):
        """Raw headers keep order and casing; headers holds the lowercase view."""
        raw = ["User-Agent", USER_AGENT, "X-Forwarded-For", "10.0.0.1", "Accept", "*/*"]
        req = MockRequest(url="/", raw_headers=list(raw))
        assert req.raw_headers == raw
        assert req.headers == {
            "user-agent": USER_AGENT,
            "x-forwarded-for": "10.0.0.1",
            "accept": "*/*",
        }

    def test_raw_headers_win_over_headers(self):
        """When both are given, raw headers are used and headers ignored."""
        req = MockRequest(
            headers={"Accept": "text/html"}, raw_headers=["User-Agent", USER_AGENT]
        )
        assert req.headers == {"user-agent": USER_AGENT}
        assert req.raw_headers == ["User-Agent", USER_AGENT]

    def test_odd_raw_headers_fall_back_to_headers(self):
        """An unpaired raw header list is ignored rather than raising."""
        req = MockRequest(
            headers={"Accept": "text/html"}, raw_headers=["User-Agent", USER_AGENT, "X"]
        )
        assert req.headers == {"accept": "text/html"}
        assert req.raw_headers == ["Accept", "text/html"]

    def test_lowercase_keys_in_headers(self):
        """Only the lowercase name is a key of headers."""
        token = "Bearer 552d9922b59dd27b383d9674"
        req = MockRequest(url="/", method="get", headers={"Authorization": token})
        assert req.get_header("Authorization") == token
        assert req.headers["authorization"] == token
        assert "Authorization" not in req.headers
        assert req.raw_headers == ["Authorization", token]

    def test_trailers(self):
        req = MockRequest(trailers={"Content-MD5": "abc"})
        assert req.trailers == {"Content-MD5": "abc"}

    def test_connection_remote_address_override(self):
        """Overriding one connection field keeps the other default."""
        req = MockRequest(connection={"remoteAddress": "10.0.0.0"})
        assert req.connection == ConnectionInfo(
            remote_address="10.0.0.0", remote_port=51501
        )
        assert req.socket.local_address == "10.0.0.0"

    def test_connection_remote_port_override(self):
        req = MockRequest(connection={"remote_port": 80})
        assert req.connection == ConnectionInfo(
            remote_address="127.0.0.1", remote_port=80
        )

    def test_settings_defaults(self):
        """Defaults come from the Settings passed in."""
        settings = Settings(remote_address="192.168.1.1", remote_port=8080, http_version="1.1")
        req = MockRequest(settings=settings)
        assert req.connection == ConnectionInfo(
            remote_address="192.168.1.1", remote_port=8080
        )
        assert req.http_version == "1.1"
        assert req.http_version_minor == 1

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("MOCKHTTP_REMOTE_PORT", "4443")
        req = MockRequest()
        assert req.connection.remote_port == 4443

    def test_repr(self):
        assert repr(MockRequest("/x", method="POST")) == "<MockRequest POST /x>"


class TestHttpVersion:
    """Test the protocol version setter and its derived fields."""

    def test_constructor_option(self):
        req = MockRequest(http_version="2.1")
        assert req.http_version == "2.1"
        assert req.http_version_major == 2
        assert req.http_version_minor == 1

    @pytest.mark.parametrize(
        "value,major,minor", [("1.1", 1, 1), ("2.0", 2, 0), ("10.12", 10, 12)]
    )
    def test_set_http_version(self, value, major, minor):
        """A well-formed version re-derives major and minor."""
        req = MockRequest()
        req.set_http_version(value)
        assert req.http_version == value
        assert req.http_version_major == major
        assert req.http_version_minor == minor

    @pytest.mark.parametrize("value", ["2", "1.1.1", "", "a.b", None])
    def test_malformed_version_keeps_major_minor(self, value):
        """A malformed version is stored but leaves major and minor untouched."""
        req = MockRequest(http_version="1.1")
        req.set_http_version(value)
        assert req.http_version == (value or "")
        assert req.http_version_major == 1
        assert req.http_version_minor == 1

    def test_direct_major_minor_do_not_sync_back(self):
        req = MockRequest()
        req.http_version_major = 2
        assert req.http_version == "1.0"


class TestHeaders:
    """Test the request header accessors."""

    def test_set_and_get_any_casing(self):
        req = MockRequest()
        req.set_header("User-Agent", USER_AGENT)
        assert req.get_header("User-Agent") == USER_AGENT
        assert req.get_header("user-agent") == USER_AGENT
        assert req.get_header("USER-AGENT") == USER_AGENT

    def test_get_unknown_header(self):
        assert MockRequest().get_header("X-Missing") is None

    def test_remove_header(self):
        """Removal clears the lowercase entry and every raw pair of that name."""
        req = MockRequest(
            headers={"User-Agent": USER_AGENT, "Content-Type": "application/json"}
        )
        req.remove_header("content-type")
        assert req.headers == {"user-agent": USER_AGENT}
        assert req.raw_headers == ["User-Agent", USER_AGENT]
        assert req.get_header("Content-Type") is None

    def test_remove_header_drops_duplicates(self):
        req = MockRequest(
            raw_headers=["Accept", "a", "User-Agent", USER_AGENT, "ACCEPT", "b"]
        )
        req.remove_header("accept")
        assert req.raw_headers == ["User-Agent", USER_AGENT]

    def test_multi_headers(self):
        """The multidict view keeps duplicate raw headers and matches any casing."""
        req = MockRequest(raw_headers=["Accept", "a", "X-Id", "1", "ACCEPT", "b"])
        headers = req.multi_headers
        assert isinstance(headers, CIMultiDictProxy)
        assert headers.getall("accept") == ["a", "b"]
        assert headers["x-id"] == "1"

    def test_parity_noops(self):
        """flush_headers, set_no_delay and set_socket_keep_alive change nothing."""
        req = MockRequest(headers={"Accept": "*/*"})
        req.flush_headers()
        req.set_no_delay(True)
        req.set_socket_keep_alive(True, 1000)
        assert req.headers == {"accept": "*/*"}


class TestReadableStream:
    """Test chunked reads of the request body."""

    @pytest.mark.asyncio
    async def test_read_whole_body(self):
        """The body given at construction reads back in full."""
        req = MockRequest(
            url="/test", method="POST", buffer=b"name=mock&version=first"
        )
        assert await req.read() == b"name=mock&version=first"
        assert req.at_eof()

    @pytest.mark.asyncio
    async def test_text_buffer(self):
        req = MockRequest(buffer="grüße")
        assert await req.text() == "grüße"

    @pytest.mark.asyncio
    async def test_json_body(self):
        req = MockRequest(buffer=b'{"name": "mock"}')
        assert await req.json() == {"name": "mock"}

    @pytest.mark.asyncio
    async def test_chunks_respect_requested_size(self):
        """Every chunk is at most as large as requested."""
        req = MockRequest(high_water_mark=5)
        req.set_buffer(QUERY)
        chunks = [chunk async for chunk in req]
        assert [len(c) for c in chunks] == [5, 5, 5, 5, 5]
        assert b"".join(chunks) == QUERY.encode()

    @pytest.mark.asyncio
    async def test_read_n(self):
        req = MockRequest(buffer=QUERY)
        assert await req.read(4) == b"name"
        assert await req.read(1) == b"="
        assert await req.read(100) == QUERY[5:].encode()
        assert await req.read(100) == b""
        assert await req.read(0) == b""

    @pytest.mark.asyncio
    async def test_readany(self):
        req = MockRequest(buffer=QUERY, high_water_mark=10)
        assert await req.readany() == b"name=node&"

    @pytest.mark.asyncio
    async def test_empty_body_ends_once(self):
        """The end marker is produced exactly once."""
        on_end = Mock()
        req = MockRequest()
        req.on_end.append(on_end)
        assert await req.read() == b""
        assert await req.read(10) == b""
        on_end.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_close_threshold(self):
        """The body is cut after the chunk that crosses emit_close."""
        steps = []
        req = MockRequest(high_water_mark=5, buffer=QUERY.encode(), emit_close=12)
        req.on_close.append(lambda: steps.append("close"))
        req.on_end.append(lambda: steps.append("end"))

        received = b""
        async for chunk in req.iter_chunked(5):
            received += chunk
            steps.append(len(received))

        assert received == b"name=node&strea"
        assert steps == [5, 10, "close", 15, "end"]

    @pytest.mark.asyncio
    async def test_close_threshold_not_reached(self):
        on_close = Mock()
        req = MockRequest(buffer=b"short", emit_close=100)
        req.on_close.append(on_close)
        assert await req.read() == b"short"
        on_close.assert_not_called()

    @pytest.mark.asyncio
    async def test_chunks_arrive_one_slice_at_a_time(self):
        """Each slice yields to the loop, so other tasks run between chunks."""
        order = []
        req = MockRequest(buffer=b"abcdef", high_water_mark=2)

        async def consume():
            async for chunk in req:
                order.append(chunk)

        async def interleave():
            for _ in range(3):
                order.append("tick")
                await asyncio.sleep(0)

        await asyncio.gather(consume(), interleave())
        assert order.index(b"ab") < order.index(b"cd") < order.index(b"ef")
        assert order.index("tick") < order.index(b"cd")

    @pytest.mark.asyncio
    async def test_pipe_into_response(self):
        """Piping writes every chunk into the response and ends it."""
        req = MockRequest(high_water_mark=5, method="POST")
        req.set_buffer(QUERY)
        res = MockResponse()
        await req.pipe(res)
        assert res.get_buffer() == QUERY
        assert res.has_ended()
        assert res.status_code == 200

    @pytest.mark.asyncio
    async def test_pipe_with_close(self):
        req = MockRequest(high_water_mark=5, buffer=QUERY, emit_close=12)
        res = MockResponse()
        await req.pipe(res)
        assert res.get_buffer() == "name=node&strea"

    @pytest.mark.asyncio
    async def test_pipe_without_end(self):
        req = MockRequest(buffer=b"abc")
        res = MockResponse()
        await req.pipe(res, end=False)
        assert res.get_buffer() == "abc"
        assert not res.has_ended()

    @pytest.mark.asyncio
    async def test_set_buffer_with_encoding(self):
        req = MockRequest()
        req.set_buffer("café", "latin-1")
        assert await req.read() == "café".encode("latin-1")


class TestTimeout:
    """Test request timeouts."""

    @pytest.mark.asyncio
    async def test_timeout_fires(self):
        req = MockRequest("/path/?kh=-1&q=node")
        req.set_timeout(20)
        assert not req.has_timedout()
        await asyncio.sleep(0.05)
        assert req.has_timedout()

    @pytest.mark.asyncio
    async def test_timeout_callback(self):
        callback = Mock()
        req = MockRequest()
        req.set_timeout(5, callback)
        await asyncio.sleep(0.03)
        callback.assert_called_once_with()
        assert req.has_timedout()

    @pytest.mark.asyncio
    async def test_zero_timeout_never_fires(self):
        req = MockRequest()
        req.set_timeout(0)
        await asyncio.sleep(0.02)
        assert not req.has_timedout()

    @pytest.mark.asyncio
    async def test_timeout_leaves_stream_open(self):
        """A request timeout does not end or close the body stream."""
        req = MockRequest(buffer=b"still here")
        req.set_timeout(5)
        await asyncio.sleep(0.03)
        assert req.has_timedout()
        assert await req.read() == b"still here"

    def test_timeout_needs_running_loop(self):
        with pytest.raises(RuntimeError):
            MockRequest().set_timeout(10)
