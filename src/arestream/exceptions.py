r"""Contain the exceptions raised while running a logical HTTP
request."""

from __future__ import annotations

__all__ = [
    "HttpRequestError",
    "MaxRedirectsError",
    "RequestTimeoutError",
    "StageError",
    "TransportError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class HttpRequestError(RuntimeError):
    r"""Base exception for failed logical HTTP requests.

    Args:
        method: The HTTP method of the failed request.
        url: The URL of the failed request.
        message: A human readable description of the failure.
        status_code: The HTTP status code, if a response was received.
        response: The ``httpx.Response`` object, if available.
        cause: The underlying exception, if any.

    Example:
        ```pycon
        >>> from arestream import HttpRequestError
        >>> exc = HttpRequestError(method="GET", url="https://example.com", message="boom")
        >>> exc.method, exc.url
        ('GET', 'https://example.com')

        ```
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.response = response
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(method={self.method!r}, url={self.url!r}, "
            f"status_code={self.status_code!r})"
        )


class TransportError(HttpRequestError):
    r"""Raised when the underlying physical exchange fails (DNS,
    connection, TLS or protocol error)."""


class RequestTimeoutError(HttpRequestError):
    r"""Raised when the response headers do not arrive before the
    configured timeout."""


class MaxRedirectsError(HttpRequestError):
    r"""Raised when a redirect chain exceeds the redirect budget.

    Args:
        location: The ``Location`` header of the redirect that could not
            be followed.
        *args: Positional arguments passed to ``HttpRequestError``.
        **kwargs: Keyword arguments passed to ``HttpRequestError``.
    """

    def __init__(self, *args, location: str, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.location = location


class StageError(HttpRequestError):
    r"""Raised when a decompression, parsing or decoding stage fails
    on the response body.

    Args:
        stage: The name of the failing stage.
        *args: Positional arguments passed to ``HttpRequestError``.
        **kwargs: Keyword arguments passed to ``HttpRequestError``.
    """

    def __init__(self, *args, stage: str, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.stage = stage
