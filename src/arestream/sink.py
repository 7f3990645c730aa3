r"""Contain the output sink returned to the caller of a logical
request."""

from __future__ import annotations

__all__ = ["OutputSink", "SinkClosedError"]

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from arestream.config import DEFAULT_SINK_BUFFER_SIZE

if TYPE_CHECKING:
    from arestream.models import ResponseEnvelope, SinkMode

logger: logging.Logger = logging.getLogger(__name__)


class SinkClosedError(RuntimeError):
    r"""Raised when an item is pushed to a closed output sink."""


class OutputSink:
    r"""Bounded asynchronous stream of the decoded response body.

    The sink is returned as soon as a request is issued. Its payload
    kind (``mode``) is unknown until the terminal response is reached,
    then fixed once: ``SinkMode.BYTES`` yields ``bytes`` chunks,
    ``SinkMode.OBJECT`` yields the structured values of a parser.

    Producers wait in ``put`` while ``maxsize`` items are buffered, so
    a slow consumer bounds the memory used by the request. A consumer
    that stops before the end calls ``aclose`` to release the request.

    Args:
        maxsize: The maximum number of buffered items. Must be > 0.

    Example:
        ```pycon
        >>> import asyncio
        >>> from arestream import get
        >>> async def example():
        ...     sink = get("https://example.com")
        ...     async for chunk in sink:
        ...         print(len(chunk))
        ...
        >>> asyncio.run(example())  # doctest: +SKIP

        ```
    """

    def __init__(self, maxsize: int = DEFAULT_SINK_BUFFER_SIZE) -> None:
        if maxsize <= 0:
            msg = f"maxsize must be > 0, got {maxsize}"
            raise ValueError(msg)
        self._maxsize = maxsize
        self._items: deque[Any] = deque()
        self._condition = asyncio.Condition()
        self._mode: SinkMode | None = None
        self._response: ResponseEnvelope | None = None
        self._error: BaseException | None = None
        self._error_raised = False
        self._closed = False
        self._started = asyncio.Event()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(mode={self._mode}, buffered={len(self._items)}, "
            f"done={self.done})"
        )

    def __aiter__(self) -> OutputSink:
        return self

    async def __anext__(self) -> Any:
        async with self._condition:
            await self._condition.wait_for(lambda: self._items or self._closed)
            if self._items:
                item = self._items.popleft()
                self._condition.notify_all()
                return item
        if self._error is not None and not self._error_raised:
            self._error_raised = True
            raise self._error
        raise StopAsyncIteration

    @property
    def mode(self) -> SinkMode | None:
        r"""The payload kind, or ``None`` before the terminal response."""
        return self._mode

    @property
    def response(self) -> ResponseEnvelope | None:
        r"""The terminal response envelope, or ``None`` before it is
        known."""
        return self._response

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def done(self) -> bool:
        r"""``True`` once the producer closed or failed the sink."""
        return self._closed

    def start(self, mode: SinkMode, response: ResponseEnvelope) -> None:
        r"""Fix the payload kind and attach the terminal response.

        Args:
            mode: The payload kind of the assembled pipeline.
            response: The terminal response envelope.

        Raises:
            RuntimeError: If the sink was already started.
        """
        if self._mode is not None:
            msg = f"sink mode is already fixed to {self._mode}"
            raise RuntimeError(msg)
        self._mode = mode
        self._response = response
        self._started.set()

    async def put(self, item: Any) -> None:
        r"""Push one item, waiting while the buffer is full.

        Raises:
            RuntimeError: If the sink is not started.
            SinkClosedError: If the sink is closed, or if the consumer
                closes it while the buffer is full.
        """
        if self._mode is None:
            msg = "sink must be started before items are pushed"
            raise RuntimeError(msg)
        async with self._condition:
            if self._closed:
                msg = "cannot push to a closed sink"
                raise SinkClosedError(msg)
            await self._condition.wait_for(
                lambda: len(self._items) < self._maxsize or self._closed
            )
            if self._closed:
                msg = "the consumer closed the sink"
                raise SinkClosedError(msg)
            self._items.append(item)
            self._condition.notify_all()

    async def close(self) -> None:
        r"""Signal the end of the stream."""
        async with self._condition:
            self._closed = True
            self._condition.notify_all()
        self._started.set()

    async def aclose(self) -> None:
        r"""Stop consuming the stream.

        The buffered items are dropped and the producer stops at its
        next ``put``, which releases the response and its connection.
        """
        async with self._condition:
            self._items.clear()
            self._closed = True
            self._condition.notify_all()
        self._started.set()

    async def fail(self, error: BaseException) -> None:
        r"""End the stream with ``error``.

        Buffered items are still delivered before ``error`` is raised
        to the consumer.
        """
        logger.debug(f"Output sink failed: {error!r}")
        async with self._condition:
            self._error = error
            self._closed = True
            self._condition.notify_all()
        self._started.set()

    async def wait_response(self) -> ResponseEnvelope:
        r"""Wait for the terminal response envelope.

        Returns:
            The terminal response envelope.

        Raises:
            HttpRequestError: If the logical request failed before a
                terminal response was reached.
        """
        await self._started.wait()
        if self._response is None:
            if self._error is not None:
                raise self._error
            msg = "sink closed without a response"
            raise RuntimeError(msg)
        return self._response

    async def read(self) -> list[Any]:
        r"""Drain the sink and return all remaining items in order."""
        return [item async for item in self]
