"""
Helpers for driving connect-style middleware against a mock request/response pair.

A connect-style middleware is a callable ``middleware(req, res, next)``. It either finishes
the response itself or hands over to the next middleware by calling ``next()``, optionally
with an error. It may be a plain function or a coroutine function.
"""

import asyncio
from dataclasses import dataclass
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from social.graze.mockhttp.config import RequestOptions, ResponseOptions
from social.graze.mockhttp.request import MockRequest
from social.graze.mockhttp.response import MockResponse

logger = logging.getLogger(__name__)

NextCallback = Callable[..., None]
Middleware = Callable[
    [MockRequest, MockResponse, NextCallback], Union[None, Awaitable[None]]
]


@dataclass
class MiddlewareOutcome:
    """
    How a middleware run completed.

    Attributes:
        next_called: True when the middleware handed over by calling next
        error: The error passed to next, if any
        ended: Whether the response had ended when the run completed
        timed_out: True when a response timeout expired before next or end
    """

    next_called: bool
    error: Optional[BaseException] = None
    ended: bool = False
    timed_out: bool = False


def make_mocked_pair(
    request: Union[str, RequestOptions, Dict[str, Any], None] = None,
    response: Union[ResponseOptions, Dict[str, Any], None] = None,
) -> Tuple[MockRequest, MockResponse]:
    return MockRequest(request), MockResponse(response)


async def run_middleware(
    middleware: Middleware,
    req: MockRequest,
    res: MockResponse,
    timeout: Optional[float] = None,
) -> MiddlewareOutcome:
    """
    Invoke ``middleware`` and wait until it calls next, finishes the response or the
    response times out.

    Args:
        middleware: Connect-style middleware, sync or async
        req: Request handed to the middleware
        res: Response handed to the middleware
        timeout: Seconds to wait for completion, no limit when None

    Returns:
        A MiddlewareOutcome describing how the middleware completed

    Raises:
        asyncio.TimeoutError: If none of these happens within ``timeout``
    """
    loop = asyncio.get_running_loop()
    done: asyncio.Future[MiddlewareOutcome] = loop.create_future()

    def next_(error: Optional[BaseException] = None) -> None:
        if not done.done():
            done.set_result(
                MiddlewareOutcome(next_called=True, error=error, ended=res.has_ended())
            )

    def finished() -> None:
        if not done.done():
            done.set_result(MiddlewareOutcome(next_called=False, ended=True))

    def timed_out() -> None:
        if not done.done():
            done.set_result(
                MiddlewareOutcome(next_called=False, ended=res.has_ended(), timed_out=True)
            )

    res.on_finish.append(finished)
    res.on_timeout.append(timed_out)
    try:
        result = middleware(req, res, next_)
        if inspect.isawaitable(result):
            await result
        outcome = await asyncio.wait_for(done, timeout)
    finally:
        res.on_finish.remove(finished)
        res.on_timeout.remove(timed_out)

    logger.debug("%r completed: %r", middleware, outcome)
    return outcome


def chain(*middlewares: Middleware, timeout: Optional[float] = None) -> Middleware:
    """
    Compose middlewares into one.

    Each middleware runs once the previous one called next. The chain stops at the first
    middleware that finishes the response; an error passed to next skips the rest and is
    handed to the outer next.
    """

    async def chained(req: MockRequest, res: MockResponse, next: NextCallback) -> None:
        for middleware in middlewares:
            outcome = await run_middleware(middleware, req, res, timeout=timeout)
            if not outcome.next_called:
                return
            if outcome.error is not None:
                next(outcome.error)
                return
        next()

    return chained
