"""
mockhttp - in-memory HTTP request/response doubles

This package provides stand-ins for the request and response objects an HTTP server hands to
its middleware, so that middleware can be unit-tested without a socket or a listening server.

Key Components:
- request: MockRequest, a readable byte source carrying request metadata
- response: MockResponse, a writable byte sink carrying the response header/status API
- middleware: run_middleware and chain, for driving connect-style (req, res, next) middleware
- adapters: bridges to aiohttp (web.Response, case-insensitive multidict headers)
- config: defaults from MOCKHTTP_* environment variables and the per-instance option records
- pytest_plugin: fixtures, enabled with pytest_plugins = ["social.graze.mockhttp.pytest_plugin"]

Typical use:

    req = MockRequest(url="/test", method="POST", buffer=b"name=mock&version=first")
    res = MockResponse()
    outcome = await run_middleware(middleware, req, res)
    assert res.status_code == 200
"""

from social.graze.mockhttp.config import RequestOptions, ResponseOptions, Settings
from social.graze.mockhttp.errors import HeaderMutationAfterSend, MockHttpException
from social.graze.mockhttp.middleware import (
    MiddlewareOutcome,
    chain,
    make_mocked_pair,
    run_middleware,
)
from social.graze.mockhttp.request import ConnectionInfo, MockRequest, SocketInfo
from social.graze.mockhttp.response import MockResponse

__all__ = [
    "ConnectionInfo",
    "HeaderMutationAfterSend",
    "MiddlewareOutcome",
    "MockHttpException",
    "MockRequest",
    "MockResponse",
    "RequestOptions",
    "ResponseOptions",
    "Settings",
    "SocketInfo",
    "chain",
    "make_mocked_pair",
    "run_middleware",
]
