"""Content sources for intercepted responses.

A content source is a lazy producer of a response body plus the media type
the body is declared as. Sources are materialized once per intercepted
request and never cached: a factory is invoked again for every request that
matches its rule.

The four variants are tagged dataclasses so that materialization can use an
exhaustive match statement:

- StaticContent: fixed bytes
- BytesFactoryContent: a callable returning bytes
- StreamFactoryContent: a callable returning a binary stream, which is
  drained and closed exactly once per materialization
- AsyncFactoryContent: a coroutine function returning bytes or a stream
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import IO, Any

from typing_extensions import assert_never

from http_interception.common.exceptions import ConfigurationException

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"

BytesFactory = Callable[[], bytes | None]
StreamFactory = Callable[[], IO[Any]]
AsyncFactory = Callable[[], Awaitable[bytes | IO[Any] | None]]


@dataclass(frozen=True)
class StaticContent:
    """A fixed response body."""

    body: bytes = b""
    media_type: str = JSON_MEDIA_TYPE


@dataclass(frozen=True)
class BytesFactoryContent:
    """A response body produced by calling ``factory`` for each request."""

    factory: BytesFactory
    media_type: str = JSON_MEDIA_TYPE


@dataclass(frozen=True)
class StreamFactoryContent:
    """A response body read from the stream returned by ``factory``.

    The stream is owned by the materialization that opened it: it is read to
    the end and closed, and it is closed even if reading raises.
    """

    factory: StreamFactory
    media_type: str = JSON_MEDIA_TYPE


@dataclass(frozen=True)
class AsyncFactoryContent:
    """A response body produced by awaiting ``factory`` for each request.

    The awaited value may be bytes, None (an empty body), or a binary stream
    which is handled the same way as StreamFactoryContent.
    """

    factory: AsyncFactory
    media_type: str = JSON_MEDIA_TYPE


ContentSource = (
    StaticContent | BytesFactoryContent | StreamFactoryContent | AsyncFactoryContent
)

EMPTY_CONTENT = StaticContent()


def _as_bytes(data: bytes | str | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _drain(stream: IO[Any]) -> bytes:
    """Read a stream to the end and release it.

    Args:
        stream: The stream to drain.

    Returns:
        Everything the stream produced.
    """
    try:
        return _as_bytes(stream.read())
    finally:
        stream.close()


def _from_result(result: bytes | IO[Any] | None) -> bytes:
    if result is None or isinstance(result, bytes | bytearray | str):
        return _as_bytes(result)
    return _drain(result)


def materialize(source: ContentSource) -> bytes:
    """Produce the response body for a content source synchronously.

    Asynchronous sources are run on a private event loop. That is only
    possible when no loop is running in the calling thread; an async source
    used from inside a running loop must go through an async client.

    Args:
        source: The content source to materialize.

    Returns:
        The response body.

    Raises:
        ConfigurationException: If an async source is materialized from a
            thread that is already running an event loop.
    """
    match source:
        case StaticContent():
            return source.body
        case BytesFactoryContent():
            return _as_bytes(source.factory())
        case StreamFactoryContent():
            return _drain(source.factory())
        case AsyncFactoryContent():
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return asyncio.run(amaterialize(source))
            raise ConfigurationException(
                "Asynchronous content cannot be materialized by a synchronous "
                "transport while an event loop is running; use an async client."
            )
        case _:
            assert_never(source)


async def amaterialize(source: ContentSource) -> bytes:
    """Produce the response body for a content source.

    Cancelling the awaiting task cancels the factory; a stream that was
    already opened is still closed.

    Args:
        source: The content source to materialize.

    Returns:
        The response body.
    """
    match source:
        case AsyncFactoryContent():
            result = await source.factory()
            return _from_result(result)
        case StaticContent() | BytesFactoryContent() | StreamFactoryContent():
            return materialize(source)
        case _:
            assert_never(source)
