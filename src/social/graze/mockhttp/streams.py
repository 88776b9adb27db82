"""
Stream capabilities shared by the mock request and response.

MockRequest implements the readable side (pull a chunk when the consumer asks for one) and
MockResponse implements the writable side (push a chunk, have it acknowledged). The two
protocols here are the only contract between them, so either side can be paired with any
other object that honours it.
"""

from abc import abstractmethod
import inspect
import logging
from typing import Any, AsyncIterable, Callable, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)

Hook = Callable[[], Any]


class ReadableByteSource(Protocol):
    """Pull-based byte source. An empty chunk marks the end of the stream."""

    @abstractmethod
    async def read(self, n: int = -1) -> bytes:
        pass

    @abstractmethod
    def at_eof(self) -> bool:
        pass


class WritableByteSink(Protocol):
    """Push-based byte sink. Each write is acknowledged before the next is accepted."""

    @abstractmethod
    def write(
        self,
        data: Union[bytes, str],
        encoding: Optional[str] = None,
        callback: Optional[Hook] = None,
    ) -> bool:
        pass

    @abstractmethod
    async def drain(self) -> None:
        pass

    @abstractmethod
    def end(
        self,
        data: Union[bytes, str, None] = None,
        encoding: Optional[str] = None,
        callback: Optional[Hook] = None,
    ) -> None:
        pass


def fire_hooks(hooks: List[Hook], name: str) -> None:
    """Invoke every registered hook in order. Exceptions propagate to the caller."""
    logger.debug("Firing %d %s hook(s)", len(hooks), name)
    for hook in list(hooks):
        hook()


async def pipe(
    source: AsyncIterable[bytes], sink: WritableByteSink, end: bool = True
) -> WritableByteSink:
    """
    Copy every chunk of ``source`` into ``sink``.

    A write that is not acknowledged right away is drained before the next chunk is
    pulled. When ``end`` is true the sink is ended once the source is exhausted.
    """
    async for chunk in source:
        if not sink.write(chunk):
            await sink.drain()

    if end:
        result = sink.end()
        if inspect.isawaitable(result):
            await result

    return sink
