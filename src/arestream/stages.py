r"""Contain the transform stages used to decode a response body.

Every stage follows the same push contract: ``feed`` receives one chunk
of bytes and returns the items ready for the next stage, ``flush`` is
called once at the end of the body and returns the remaining items.
A stage is created fresh for every physical exchange.
"""

from __future__ import annotations

__all__ = [
    "CharsetDecodeStage",
    "DeflateStage",
    "GzipStage",
    "JsonParseStage",
    "Stage",
    "XmlParseStage",
]

import codecs
import json
import logging
import zlib
from abc import ABC, abstractmethod
from typing import Any
from xml.etree import ElementTree

from arestream.config import DEFAULT_ENCODING
from arestream.models import SinkMode

logger: logging.Logger = logging.getLogger(__name__)


class Stage(ABC):
    r"""Base class of the response transform stages.

    Attributes:
        name: A short name used in logs and errors.
        kind: The payload kind produced by the stage.
    """

    name: str = "stage"
    kind: SinkMode = SinkMode.BYTES

    @abstractmethod
    def feed(self, chunk: bytes) -> list[Any]:
        r"""Transform one chunk of input.

        Args:
            chunk: The input bytes.

        Returns:
            The items produced for the next stage. Can be empty.
        """

    @abstractmethod
    def flush(self) -> list[Any]:
        r"""Finish the transform at the end of the input.

        Returns:
            The remaining items produced for the next stage.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}()"


class GzipStage(Stage):
    r"""Decompress a gzip encoded body.

    Concatenated gzip members are decompressed one after the other.
    """

    name = "gzip"

    def __init__(self) -> None:
        self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)

    def feed(self, chunk: bytes) -> list[Any]:
        out = bytearray()
        data = chunk
        while data:
            out += self._obj.decompress(data)
            data = self._obj.unused_data
            if data:
                # Start of the next gzip member
                self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)
        return [bytes(out)] if out else []

    def flush(self) -> list[Any]:
        tail = self._obj.flush()
        return [tail] if tail else []


class DeflateStage(Stage):
    r"""Decompress a deflate encoded body.

    Both zlib wrapped streams and raw deflate streams are accepted, the
    format is detected on the first chunk.
    """

    name = "deflate"

    def __init__(self) -> None:
        self._obj = zlib.decompressobj()
        self._first_try = True
        self._data = b""

    def feed(self, chunk: bytes) -> list[Any]:
        if not chunk:
            return []
        if not self._first_try:
            out = self._obj.decompress(chunk)
            return [out] if out else []

        self._data += chunk
        try:
            out = self._obj.decompress(chunk)
        except zlib.error:
            logger.debug("Deflate body is not zlib wrapped, falling back to raw deflate")
            self._first_try = False
            self._obj = zlib.decompressobj(-zlib.MAX_WBITS)
            data, self._data = self._data, b""
            return self.feed(data)
        if out:
            self._first_try = False
            self._data = b""
        return [out] if out else []

    def flush(self) -> list[Any]:
        tail = self._obj.flush()
        return [tail] if tail else []


class CharsetDecodeStage(Stage):
    r"""Re-encode a text body from ``charset`` to UTF-8.

    Multi-byte sequences split across chunks are handled by an
    incremental decoder. Invalid sequences are replaced.

    Args:
        charset: The charset of the input bytes.

    Raises:
        LookupError: If the charset is unknown.
    """

    name = "decode"

    def __init__(self, charset: str) -> None:
        self._charset = charset
        self._decoder = codecs.getincrementaldecoder(charset)(errors="replace")

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(charset={self._charset!r})"

    def feed(self, chunk: bytes) -> list[Any]:
        text = self._decoder.decode(chunk)
        return [text.encode(DEFAULT_ENCODING)] if text else []

    def flush(self) -> list[Any]:
        text = self._decoder.decode(b"", final=True)
        return [text.encode(DEFAULT_ENCODING)] if text else []


class JsonParseStage(Stage):
    r"""Parse a JSON body into one structured value.

    The body is buffered until ``flush``. An empty body produces no
    item. When the body is not valid JSON, the raw bytes are emitted
    instead of a structured value.
    """

    name = "json"
    kind = SinkMode.OBJECT

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> list[Any]:
        self._buffer += chunk
        return []

    def flush(self) -> list[Any]:
        if not self._buffer:
            return []
        data = bytes(self._buffer)
        try:
            return [json.loads(data)]
        except ValueError:
            logger.debug(f"Failed to parse JSON body ({len(data)} bytes), keeping raw bytes")
            return [data]


class XmlParseStage(Stage):
    r"""Parse an XML body into an ``xml.etree.ElementTree.Element``.

    The document is fed incrementally to the parser. When the body is
    not well-formed, the raw bytes are emitted instead.
    """

    name = "xml"
    kind = SinkMode.OBJECT

    def __init__(self) -> None:
        self._parser = ElementTree.XMLParser()
        self._raw = bytearray()
        self._failed = False

    def feed(self, chunk: bytes) -> list[Any]:
        self._raw += chunk
        if not self._failed:
            try:
                self._parser.feed(chunk)
            except ElementTree.ParseError as exc:
                logger.debug(f"Failed to parse XML body: {exc}")
                self._failed = True
        return []

    def flush(self) -> list[Any]:
        if not self._raw:
            return []
        if not self._failed:
            try:
                return [self._parser.close()]
            except ElementTree.ParseError as exc:
                logger.debug(f"Failed to parse XML body: {exc}")
        return [bytes(self._raw)]
