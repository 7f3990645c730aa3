r"""Contain the data model shared by the orchestrator, the pipeline
builder and the response aggregator."""

from __future__ import annotations

__all__ = [
    "ContentType",
    "Fail",
    "Proceed",
    "Reauthenticate",
    "Redirect",
    "RequestContext",
    "RequestState",
    "ResponseEnvelope",
    "RetryDecision",
    "SinkMode",
    "parse_content_type",
]

import enum
import re
from dataclasses import dataclass, field
from typing import Any, Union

import httpx

from arestream.config import DEFAULT_CHARSET, DEFAULT_REDIRECT_BUDGET, DEFAULT_TIMEOUT

_CHARSET_PATTERN = re.compile(r"charset=([^;]+)")


class SinkMode(enum.Enum):
    r"""Payload kind carried by a stage or an output sink."""

    BYTES = "bytes"
    OBJECT = "object"


class RequestState(enum.Enum):
    r"""States of the logical request state machine.

    Only ``COMPLETED`` and ``FAILED`` are observable by callers.
    """

    IDLE = "idle"
    SENT = "sent"
    REDIRECTING = "redirecting"
    AUTHENTICATING = "authenticating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RequestContext:
    r"""Mutable state of one logical request.

    Only the orchestrator mutates a context, and only between two
    physical exchanges.

    Args:
        method: The HTTP method of the next physical exchange.
        url: The target URL of the next physical exchange.
        headers: The request headers (case-insensitive).
        body: The optional request body.
        attempt: The attempt counter, starting at 1. It only increases
            on redirects.
        redirect_budget: The maximum number of redirects to follow.
            ``0`` disables redirects.
        timeout: Seconds to wait for the response headers. ``0``
            disables the timeout.
        credentials: Optional ``(username, password)`` used to answer
            an authentication challenge.
        output: Optional path receiving the raw body of a 200 response.
    """

    method: str
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes | None = None
    attempt: int = 1
    redirect_budget: int = DEFAULT_REDIRECT_BUDGET
    timeout: float = DEFAULT_TIMEOUT
    credentials: tuple[str, str] | None = None
    output: str | None = None

    @property
    def path(self) -> str:
        r"""The request target (path and query) used by digest
        authentication."""
        return self.url.raw_path.decode("ascii")


@dataclass(frozen=True)
class ContentType:
    r"""Parsed ``Content-Type`` header.

    Args:
        media_type: The media type without parameters, or ``None`` if
            the header is missing.
        charset: The declared charset.
    """

    media_type: str | None = None
    charset: str = DEFAULT_CHARSET

    @property
    def is_text(self) -> bool:
        return self.media_type is not None and self.media_type.startswith("text/")


def parse_content_type(header: str | None) -> ContentType:
    r"""Parse a ``Content-Type`` header value.

    The charset falls back to ``iso-8859-1`` when absent or
    unparsable.

    Args:
        header: The header value, or ``None`` if not present.

    Returns:
        The parsed content type.

    Example:
        ```pycon
        >>> from arestream.models import parse_content_type
        >>> parse_content_type("text/html; charset=utf-8")
        ContentType(media_type='text/html', charset='utf-8')
        >>> parse_content_type("application/json")
        ContentType(media_type='application/json', charset='iso-8859-1')
        >>> parse_content_type(None)
        ContentType(media_type=None, charset='iso-8859-1')

        ```
    """
    if not header:
        return ContentType()
    media_type, _, params = header.partition(";")
    match = _CHARSET_PATTERN.search(params)
    charset = match.group(1).strip().strip('"') if match else DEFAULT_CHARSET
    return ContentType(media_type=media_type.strip(), charset=charset or DEFAULT_CHARSET)


@dataclass
class ResponseEnvelope:
    r"""Terminal response of a logical request.

    Args:
        status_code: The HTTP status code.
        headers: The response headers.
        content_type: The parsed ``Content-Type`` header.
        url: The URL of the terminal physical exchange.
        wire_bytes: The number of raw bytes received over the wire, before
            any decompression. Only counted when a callback is used.
        body: The aggregated body. Only set when a callback is used.
    """

    status_code: int
    headers: httpx.Headers
    content_type: ContentType
    url: httpx.URL
    wire_bytes: int = 0
    body: Any = None


@dataclass(frozen=True)
class Proceed:
    r"""The response is terminal."""


@dataclass(frozen=True)
class Redirect:
    r"""Follow a redirect to ``url``."""

    url: httpx.URL


@dataclass(frozen=True)
class Reauthenticate:
    r"""Retry once with the given ``Authorization`` header value."""

    header: str


@dataclass(frozen=True)
class Fail:
    r"""Terminate the logical request with ``error``."""

    error: Exception


RetryDecision = Union[Proceed, Redirect, Reauthenticate, Fail]
