r"""Contain the builder assembling the response transform pipeline.

The stages are selected in a fixed order, each one independently:

1. decompression, from the ``Content-Encoding`` header
2. parsing, from the exact media type (switches the sink to object mode)
3. charset decoding, for text bodies when no parser was selected
"""

from __future__ import annotations

__all__ = ["Pipeline", "PipelineBuilder", "is_utf8"]

import logging
import re
from typing import TYPE_CHECKING, Any

from arestream.exceptions import StageError
from arestream.models import ContentType, SinkMode, parse_content_type
from arestream.registry import DEFAULT_REGISTRIES, StageRegistries

if TYPE_CHECKING:
    import httpx

    from arestream.models import RequestContext
    from arestream.options import RequestOptions
    from arestream.stages import Stage

logger: logging.Logger = logging.getLogger(__name__)

_UTF8_PATTERN = re.compile(r"utf-?8$", re.IGNORECASE)


def is_utf8(charset: str) -> bool:
    r"""Indicate if a charset name is a UTF-8 alias.

    Example:
        ```pycon
        >>> from arestream.pipeline import is_utf8
        >>> is_utf8("UTF-8"), is_utf8("utf8"), is_utf8("iso-8859-1")
        (True, True, False)

        ```
    """
    return _UTF8_PATTERN.search(charset) is not None


class Pipeline:
    r"""Ordered list of stages feeding one output sink.

    The payload kind (``mode``) is computed once from the stages and
    never changes afterwards.

    Args:
        stages: The stages, in order.
        content_type: The parsed ``Content-Type`` of the response.
        method: The HTTP method, used in errors.
        url: The response URL, used in errors.
        strict_parsing: If ``True``, a parser that produces no
            structured value from a non-empty body raises
            ``StageError``.
    """

    def __init__(
        self,
        stages: list[Stage],
        content_type: ContentType,
        method: str,
        url: str,
        strict_parsing: bool = False,
    ) -> None:
        self._stages = tuple(stages)
        self._content_type = content_type
        self._method = method
        self._url = url
        self._strict_parsing = strict_parsing
        self._mode = (
            SinkMode.OBJECT
            if any(stage.kind is SinkMode.OBJECT for stage in self._stages)
            else SinkMode.BYTES
        )
        self._parser_input = 0
        self._structured = False

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(stages={list(self._stages)}, mode={self._mode})"

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def mode(self) -> SinkMode:
        return self._mode

    @property
    def content_type(self) -> ContentType:
        return self._content_type

    @property
    def parsed(self) -> bool:
        r"""``True`` if a parsing stage was included."""
        return self._mode is SinkMode.OBJECT

    def feed(self, chunk: bytes) -> list[Any]:
        r"""Push one raw chunk through all the stages.

        Returns:
            The items ready for the output sink.

        Raises:
            StageError: If a stage fails.
        """
        items: list[Any] = [chunk]
        for stage in self._stages:
            items = [out for item in items for out in self._feed(stage, item)]
        return self._track(items)

    def flush(self) -> list[Any]:
        r"""Flush all the stages at the end of the body.

        Each stage is flushed after receiving the items flushed by the
        previous stages.

        Returns:
            The remaining items for the output sink.

        Raises:
            StageError: If a stage fails, or if strict parsing is enabled
                and the parser produced no structured value.
        """
        items: list[Any] = []
        for stage in self._stages:
            items = [out for item in items for out in self._feed(stage, item)]
            items.extend(self._call(stage, stage.flush))
        items = self._track(items)
        if self._strict_parsing and self.parsed and self._parser_input and not self._structured:
            raise StageError(
                method=self._method,
                url=self._url,
                message=(
                    f"Could not parse the {self._content_type.media_type} body of the "
                    f"{self._method} request to {self._url}"
                ),
                stage=self._stages[-1].name,
            )
        return items

    def _feed(self, stage: Stage, item: Any) -> list[Any]:
        # Strict parsing only applies to a non-empty decoded body
        if stage.kind is SinkMode.OBJECT and isinstance(item, (bytes, bytearray)):
            self._parser_input += len(item)
        return self._call(stage, stage.feed, item)

    def _track(self, items: list[Any]) -> list[Any]:
        if any(not isinstance(item, (bytes, bytearray)) for item in items):
            self._structured = True
        return items

    def _call(self, stage: Stage, func: Any, *args: Any) -> list[Any]:
        try:
            return func(*args)
        except Exception as exc:
            raise StageError(
                method=self._method,
                url=self._url,
                message=f"{stage.name} stage failed on the response to {self._url}: {exc}",
                stage=stage.name,
                cause=exc,
            ) from exc


class PipelineBuilder:
    r"""Assemble the response pipeline from the terminal response.

    Args:
        registries: The registries used to select the stages.

    Example:
        ```pycon
        >>> import httpx
        >>> from arestream.options import RequestOptions, build_context
        >>> from arestream.pipeline import PipelineBuilder
        >>> context = build_context("GET", "https://example.com")
        >>> headers = httpx.Headers(
        ...     {"content-encoding": "gzip", "content-type": "application/json"}
        ... )
        >>> pipeline = PipelineBuilder().build(context, headers, RequestOptions())
        >>> [stage.name for stage in pipeline.stages], pipeline.mode
        (['gzip', 'json'], <SinkMode.OBJECT: 'object'>)

        ```
    """

    def __init__(self, registries: StageRegistries = DEFAULT_REGISTRIES) -> None:
        self._registries = registries

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(registries={self._registries})"

    def build(
        self, context: RequestContext, headers: httpx.Headers, options: RequestOptions
    ) -> Pipeline:
        r"""Build the pipeline of a terminal response.

        Args:
            context: The context of the logical request.
            headers: The headers of the terminal response.
            options: The request options.

        Returns:
            The assembled pipeline, with fresh stages.
        """
        content_type = parse_content_type(headers.get("content-type"))
        stages: list[Stage] = []

        encoding = headers.get("content-encoding")
        decompressor = self._registries.decompressors.lookup(encoding)
        if decompressor is not None:
            stages.append(decompressor())
        elif encoding:
            logger.debug(f"No decompressor registered for content-encoding {encoding!r}")

        parser = (
            self._registries.parsers.lookup(content_type.media_type)
            if options.parse_response
            else None
        )
        if parser is not None:
            stages.append(parser())
        elif (
            content_type.is_text
            and options.decode_response
            and not is_utf8(content_type.charset)
        ):
            decoder = self._registries.decoders.lookup(content_type.charset)
            if decoder is not None:
                stages.append(decoder())
            else:
                logger.debug(f"No decoder registered for charset {content_type.charset!r}")

        pipeline = Pipeline(
            stages,
            content_type=content_type,
            method=context.method,
            url=str(context.url),
            strict_parsing=options.strict_parsing,
        )
        logger.debug(f"Assembled {pipeline!r} for {context.method} request to {context.url}")
        return pipeline
