r"""Contain the response aggregator used by callback consumers."""

from __future__ import annotations

__all__ = ["ResponseAggregator", "ResponseCallback", "aggregate_body"]

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from arestream.config import DEFAULT_ENCODING
from arestream.exceptions import HttpRequestError

if TYPE_CHECKING:
    from arestream.models import ResponseEnvelope
    from arestream.pipeline import Pipeline
    from arestream.sink import OutputSink

logger: logging.Logger = logging.getLogger(__name__)

ResponseCallback = Callable[[BaseException | None, "ResponseEnvelope | None", Any], Any]


def aggregate_body(items: list[Any], text: bool, parsed: bool) -> Any:
    r"""Combine the items emitted by a pipeline into one body.

    A single structured item is the body. Otherwise the byte chunks
    are concatenated, and decoded as UTF-8 text when the response is
    textual or when a parser was attempted.

    Args:
        items: The emitted items, in order.
        text: ``True`` if the response media type is ``text/*``.
        parsed: ``True`` if a parsing stage was included.

    Returns:
        The aggregated body.

    Example:
        ```pycon
        >>> from arestream.aggregator import aggregate_body
        >>> aggregate_body([{"a": 1}], text=False, parsed=True)
        {'a': 1}
        >>> aggregate_body([b"ab", b"c"], text=True, parsed=False)
        'abc'
        >>> aggregate_body([b"ab", b"c"], text=False, parsed=False)
        b'abc'

        ```
    """
    structured = [item for item in items if not isinstance(item, (bytes, bytearray))]
    if structured:
        # Parsers emit one value per body, custom ones may emit several
        return structured[0] if len(items) == 1 else items
    body = b"".join(items)
    if text or parsed:
        return body.decode(DEFAULT_ENCODING, errors="replace")
    return body


class ResponseAggregator:
    r"""Buffer the output sink into one body and invoke a completion
    callback exactly once.

    The aggregator is also a tap on the raw response stream: ``write``
    receives every chunk before decompression and counts the bytes
    seen on the wire.

    Args:
        callback: Called with ``(error, envelope, body)``. ``error`` is
            ``None`` on success, ``envelope`` and ``body`` are ``None``
            on failure.
    """

    def __init__(self, callback: ResponseCallback) -> None:
        self._callback = callback
        self._called = False
        self._wire_bytes = 0

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(wire_bytes={self._wire_bytes}, "
            f"called={self._called})"
        )

    @property
    def wire_bytes(self) -> int:
        return self._wire_bytes

    def write(self, chunk: bytes) -> None:
        self._wire_bytes += len(chunk)

    async def consume(self, sink: OutputSink, pipeline: Pipeline) -> None:
        r"""Drain ``sink`` and deliver the aggregated body.

        Args:
            sink: The output sink of the terminal response.
            pipeline: The pipeline feeding the sink.
        """
        items = []
        try:
            async for item in sink:
                items.append(item)
        except (HttpRequestError, OSError) as exc:
            self.fail(exc)
            return

        envelope = await sink.wait_response()
        envelope.wire_bytes = self._wire_bytes
        envelope.body = aggregate_body(
            items, text=pipeline.content_type.is_text, parsed=pipeline.parsed
        )
        logger.debug(
            f"Aggregated {len(items)} item(s) from {self._wire_bytes} wire bytes "
            f"for the response of {envelope.url}"
        )
        self._invoke(None, envelope, envelope.body)

    def fail(self, error: BaseException) -> None:
        r"""Deliver ``error`` to the callback."""
        self._invoke(error, None, None)

    def _invoke(
        self, error: BaseException | None, envelope: ResponseEnvelope | None, body: Any
    ) -> None:
        if self._called:
            logger.debug(f"Ignoring completion after the callback was invoked: {error!r}")
            return
        self._called = True
        self._callback(error, envelope, body)
