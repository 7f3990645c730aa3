r"""Contain the transport adapter performing one physical HTTP
exchange with httpx."""

from __future__ import annotations

__all__ = ["Exchange", "HttpxTransport", "Transport", "create_client"]

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from arestream.options import RequestOptions

logger: logging.Logger = logging.getLogger(__name__)


class Exchange(Protocol):
    r"""One physical exchange whose headers have arrived.

    ``httpx.Response`` objects opened with ``stream=True`` satisfy this
    protocol.
    """

    status_code: int
    headers: httpx.Headers
    url: httpx.URL

    def aiter_raw(self) -> AsyncIterator[bytes]:
        r"""Iterate over the raw body bytes, as received on the wire."""

    async def aclose(self) -> None:
        r"""Release the exchange, aborting it if the body is still
        streaming."""


class Transport(Protocol):
    r"""Issue physical HTTP exchanges."""

    async def exchange(
        self, method: str, url: httpx.URL, headers: httpx.Headers, body: bytes | None = None
    ) -> Exchange:
        r"""Send a request and return once the response headers have
        arrived.

        Cancelling the awaiting task aborts the in-flight exchange.
        """


class HttpxTransport:
    r"""Transport adapter over an ``httpx.AsyncClient``.

    Redirects are never followed by httpx, and the body is returned
    undecoded so the response pipeline sees the bytes of the wire.

    Args:
        client: The client used to send the requests.

    Example:
        ```pycon
        >>> import httpx
        >>> from arestream.transport import HttpxTransport
        >>> transport = HttpxTransport(httpx.AsyncClient())
        >>> transport
        HttpxTransport(client=AsyncClient)

        ```
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(client={self._client.__class__.__qualname__})"

    async def exchange(
        self, method: str, url: httpx.URL, headers: httpx.Headers, body: bytes | None = None
    ) -> httpx.Response:
        request = self._client.build_request(method, url, headers=headers, content=body)
        logger.debug(f"Sending {method} request to {url}")
        return await self._client.send(request, stream=True, follow_redirects=False)


def create_client(options: RequestOptions) -> httpx.AsyncClient:
    r"""Create the client used when the caller does not provide one.

    httpx timeouts are disabled: the orchestrator times the header
    arrival itself.

    Args:
        options: The request options providing ``proxy`` and
            ``verify``.

    Returns:
        A new ``httpx.AsyncClient``. The caller owns it.
    """
    return httpx.AsyncClient(proxy=options.proxy, verify=options.verify, timeout=None)
