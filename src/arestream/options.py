r"""Contain the request options and their normalization into a
request context."""

from __future__ import annotations

__all__ = [
    "DEFAULT_OPTIONS",
    "RequestOptions",
    "build_context",
    "default_user_agent",
    "encode_body",
    "validate_options",
]

import dataclasses
import json
import logging
import platform
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from arestream.auth import basic_auth_header
from arestream.config import (
    DEFAULT_ACCEPT,
    DEFAULT_CONNECTION,
    DEFAULT_ENCODING,
    DEFAULT_FOLLOW_REDIRECTS,
    DEFAULT_REDIRECT_BUDGET,
    DEFAULT_SINK_BUFFER_SIZE,
    DEFAULT_TIMEOUT,
)
from arestream.models import RequestContext

logger: logging.Logger = logging.getLogger(__name__)

_NEGOTIATED_AUTH = ("auto", "digest")
_AUTH_MODES = (None, "basic", *_NEGOTIATED_AUTH)


@dataclass(frozen=True)
class RequestOptions:
    r"""Options of a logical request.

    Instances are immutable. Use ``with_defaults`` to derive a new set
    of options.

    Args:
        follow: The redirect budget. ``0`` disables redirects, ``True``
            follows up to 10 redirects.
        timeout: Seconds to wait for the response headers. ``0``
            disables the timeout.
        decode_response: If ``True``, text bodies in a non UTF-8
            charset are re-encoded to UTF-8.
        parse_response: If ``True``, bodies with a registered media
            type are parsed into a structured value.
        strict_parsing: If ``True``, a non-empty body that the parser
            cannot turn into a structured value fails the request with
            ``StageError`` instead of being returned as text.
        username: The user name used for authentication.
        password: The password used for authentication.
        auth: ``None`` or ``"basic"`` sends a pre-emptive Basic header.
            ``"auto"`` or ``"digest"`` answers the server challenge.
        proxy: The proxy URL, used when no client is provided.
        verify: TLS verification, used when no client is provided.
        output: Path receiving the raw body of a 200 response.
        headers: Extra request headers, applied last.
        accept: The ``Accept`` header value.
        connection: The ``Connection`` header value.
        user_agent: The ``User-Agent`` header value.
        compressed: If ``True``, gzip and deflate responses are
            requested.
        json: If ``True``, mapping bodies are encoded as JSON instead of
            form data.
        encoding: The encoding of text request bodies.
        sink_buffer_size: The maximum number of items buffered in the
            output sink.
    """

    follow: int | bool = DEFAULT_REDIRECT_BUDGET
    timeout: float = DEFAULT_TIMEOUT
    decode_response: bool = True
    parse_response: bool = True
    strict_parsing: bool = False
    username: str | None = None
    password: str | None = None
    auth: str | None = None
    proxy: str | None = None
    verify: bool | str = True
    output: str | None = None
    headers: Mapping[str, str] | None = None
    accept: str = DEFAULT_ACCEPT
    connection: str = DEFAULT_CONNECTION
    user_agent: str | None = None
    compressed: bool = False
    json: bool = False
    encoding: str = DEFAULT_ENCODING
    sink_buffer_size: int = DEFAULT_SINK_BUFFER_SIZE

    @property
    def redirect_budget(self) -> int:
        if self.follow is True:
            return DEFAULT_FOLLOW_REDIRECTS
        return int(self.follow)

    def with_defaults(self, **kwargs: Any) -> RequestOptions:
        r"""Return a copy of the options with the given fields replaced.

        Example:
            ```pycon
            >>> from arestream import RequestOptions
            >>> options = RequestOptions().with_defaults(follow=3)
            >>> options.redirect_budget
            3

            ```
        """
        return dataclasses.replace(self, **kwargs)


DEFAULT_OPTIONS = RequestOptions()


def validate_options(options: RequestOptions) -> None:
    r"""Validate request options.

    Args:
        options: The options to validate.

    Raises:
        ValueError: If ``follow`` or ``timeout`` are negative, if
            ``sink_buffer_size`` is not positive, or if ``auth`` is
            unknown.

    Example:
        ```pycon
        >>> from arestream.options import RequestOptions, validate_options
        >>> validate_options(RequestOptions(follow=5, timeout=2.0))
        >>> validate_options(RequestOptions(follow=-1))  # doctest: +SKIP

        ```
    """
    if options.redirect_budget < 0:
        msg = f"follow must be >= 0, got {options.follow}"
        raise ValueError(msg)
    if options.timeout < 0:
        msg = f"timeout must be >= 0, got {options.timeout}"
        raise ValueError(msg)
    if options.sink_buffer_size <= 0:
        msg = f"sink_buffer_size must be > 0, got {options.sink_buffer_size}"
        raise ValueError(msg)
    if options.auth not in _AUTH_MODES:
        msg = f"auth must be one of {_AUTH_MODES}, got {options.auth!r}"
        raise ValueError(msg)


def default_user_agent() -> str:
    from arestream import __version__

    return (
        f"arestream/{__version__} (Python {platform.python_version()}; "
        f"{sys.platform} {platform.machine()})"
    )


def encode_body(data: Any, options: RequestOptions, headers: httpx.Headers) -> bytes | None:
    r"""Encode the request body and set its content headers.

    ``bytes`` are sent as-is and ``str`` are encoded with
    ``options.encoding``. Other values are encoded as JSON when
    ``options.json`` is set, or as form data otherwise. A missing
    ``Content-Type`` header is filled in.

    Args:
        data: The request body, or ``None``.
        options: The request options.
        headers: The request headers, updated in place.

    Returns:
        The encoded body, or ``None`` if there is no body.
    """
    if data is None:
        return None
    if isinstance(data, bytes):
        body = data
    elif isinstance(data, str):
        body = data.encode(options.encoding)
    elif options.json:
        body = json.dumps(data).encode(options.encoding)
    else:
        body = urlencode(data, doseq=True).encode(options.encoding)

    if "content-type" not in headers:
        headers["Content-Type"] = (
            "application/json" if options.json else "application/x-www-form-urlencoded"
        )
    headers["Content-Length"] = str(len(body))
    return body


def build_context(
    method: str, url: str, data: Any = None, options: RequestOptions = DEFAULT_OPTIONS
) -> RequestContext:
    r"""Normalize a request into the context driven by the
    orchestrator.

    Args:
        method: The HTTP method.
        url: The target URL. ``http://`` is prepended when no scheme is
            given.
        data: The optional request body.
        options: The request options.

    Returns:
        A new request context.

    Raises:
        ValueError: If the options are invalid.

    Example:
        ```pycon
        >>> from arestream.options import build_context
        >>> context = build_context("get", "example.com/data")
        >>> context.method, str(context.url)
        ('GET', 'http://example.com/data')

        ```
    """
    validate_options(options)
    if "://" not in url:
        url = f"http://{url}"

    headers = httpx.Headers(
        {
            "Accept": options.accept,
            "Connection": options.connection,
            "User-Agent": options.user_agent or default_user_agent(),
            "Accept-Encoding": "gzip, deflate" if options.compressed else "identity",
        }
    )
    for key, value in (options.headers or {}).items():
        headers[key] = value

    credentials = None
    if options.username and options.password:
        if options.auth in _NEGOTIATED_AUTH:
            credentials = (options.username, options.password)
            logger.debug(f"Credentials kept to answer {options.auth!r} authentication challenges")
        else:
            auth_header = "Proxy-Authorization" if options.proxy else "Authorization"
            headers[auth_header] = basic_auth_header(options.username, options.password)

    body = encode_body(data, options, headers)
    return RequestContext(
        method=method.upper(),
        url=httpx.URL(url),
        headers=headers,
        body=body,
        redirect_budget=options.redirect_budget,
        timeout=options.timeout,
        credentials=credentials,
        output=options.output,
    )
