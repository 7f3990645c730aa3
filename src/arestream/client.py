r"""Contain the functions issuing logical HTTP requests.

Every function returns the live ``OutputSink`` immediately and runs the
request in a background task of the running event loop. When a
``callback`` is given, the response body is aggregated and the callback
is invoked exactly once with ``(error, envelope, body)``.
"""

from __future__ import annotations

__all__ = ["delete", "fetch", "get", "head", "patch", "post", "put", "request"]

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from arestream.aggregator import ResponseAggregator
from arestream.options import DEFAULT_OPTIONS, RequestOptions, build_context
from arestream.orchestrator import Orchestrator
from arestream.registry import DEFAULT_REGISTRIES, StageRegistries
from arestream.sink import OutputSink
from arestream.transport import HttpxTransport, create_client

if TYPE_CHECKING:
    from arestream.aggregator import ResponseCallback
    from arestream.auth import AuthNegotiator
    from arestream.models import RequestContext, RequestState, ResponseEnvelope

logger: logging.Logger = logging.getLogger(__name__)

# Strong references to the running requests, see ``asyncio.create_task``
_BACKGROUND_TASKS: set[asyncio.Task] = set()


def request(
    method: str,
    url: str,
    data: Any = None,
    *,
    client: httpx.AsyncClient | None = None,
    callback: ResponseCallback | None = None,
    options: RequestOptions | None = None,
    registries: StageRegistries = DEFAULT_REGISTRIES,
    negotiator: AuthNegotiator | None = None,
    **kwargs: Any,
) -> OutputSink:
    r"""Issue a logical HTTP request.

    Must be called from a coroutine, or any code running in an event
    loop. The request runs in a background task.

    Args:
        method: The HTTP method (case-insensitive).
        url: The URL to send the request to.
        data: The optional request body (``bytes``, ``str`` or a mapping).
        client: An optional ``httpx.AsyncClient`` to send the requests.
            If None, a new client is created and closed at the end of
            the logical request.
        callback: An optional completion callback. When given, the body
            is aggregated and the callback is invoked exactly once with
            ``(error, envelope, body)``.
        options: The base request options. ``DEFAULT_OPTIONS`` is used
            if None.
        registries: The stage registries used to build the response
            pipeline.
        negotiator: The negotiator answering authentication challenges.
        **kwargs: Fields of ``RequestOptions`` overriding ``options``.

    Returns:
        The output sink of the request.

    Raises:
        ValueError: If the options are invalid.
        RuntimeError: If no event loop is running.

    Example:
        ```pycon
        >>> import asyncio
        >>> from arestream import request
        >>> async def example():
        ...     done = asyncio.get_running_loop().create_future()
        ...     request(
        ...         "GET",
        ...         "https://api.example.com/data",
        ...         follow=5,
        ...         callback=lambda err, resp, body: done.set_result((err, body)),
        ...     )
        ...     return await done
        ...
        >>> asyncio.run(example())  # doctest: +SKIP

        ```
    """
    options = options or DEFAULT_OPTIONS
    if kwargs:
        options = options.with_defaults(**kwargs)
    context = build_context(method, url, data, options)
    loop = asyncio.get_running_loop()
    logger.debug(
        f"Issuing {context.method} request to {context.url} "
        f"({'callback' if callback is not None else 'stream'} mode)"
    )

    sink = OutputSink(maxsize=options.sink_buffer_size)
    aggregator = ResponseAggregator(callback) if callback is not None else None
    task = loop.create_task(
        _run_request(context, options, sink, aggregator, client, registries, negotiator)
    )
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_BACKGROUND_TASKS.discard)
    return sink


async def _run_request(
    context: RequestContext,
    options: RequestOptions,
    sink: OutputSink,
    aggregator: ResponseAggregator | None,
    client: httpx.AsyncClient | None,
    registries: StageRegistries,
    negotiator: AuthNegotiator | None,
) -> RequestState:
    owns_client = client is None
    client = client or create_client(options)
    try:
        orchestrator = Orchestrator(HttpxTransport(client), registries, negotiator)
        return await orchestrator.run(context, options, sink, aggregator)
    finally:
        if owns_client:
            await client.aclose()


async def fetch(
    method: str, url: str, data: Any = None, **kwargs: Any
) -> tuple[ResponseEnvelope, Any]:
    r"""Issue a logical HTTP request and wait for the aggregated body.

    Args:
        method: The HTTP method (case-insensitive).
        url: The URL to send the request to.
        data: The optional request body.
        **kwargs: Keyword arguments passed to ``request``.

    Returns:
        The terminal response envelope and the aggregated body.

    Raises:
        HttpRequestError: If the logical request fails.

    Example:
        ```pycon
        >>> import asyncio
        >>> from arestream import fetch
        >>> response, body = asyncio.run(fetch("GET", "https://example.com"))  # doctest: +SKIP

        ```
    """
    done: asyncio.Future = asyncio.get_running_loop().create_future()

    def callback(
        error: BaseException | None, response: ResponseEnvelope | None, body: Any
    ) -> None:
        if done.done():
            return
        if error is not None:
            done.set_exception(error)
        else:
            done.set_result((response, body))

    request(method, url, data, callback=callback, **kwargs)
    return await done


def get(url: str, **kwargs: Any) -> OutputSink:
    r"""Issue a GET request. See ``request`` for the arguments."""
    return request("GET", url, **kwargs)


def head(url: str, **kwargs: Any) -> OutputSink:
    r"""Issue a HEAD request. See ``request`` for the arguments."""
    return request("HEAD", url, **kwargs)


def post(url: str, data: Any = None, **kwargs: Any) -> OutputSink:
    r"""Issue a POST request. See ``request`` for the arguments."""
    return request("POST", url, data, **kwargs)


def put(url: str, data: Any = None, **kwargs: Any) -> OutputSink:
    r"""Issue a PUT request. See ``request`` for the arguments."""
    return request("PUT", url, data, **kwargs)


def patch(url: str, data: Any = None, **kwargs: Any) -> OutputSink:
    r"""Issue a PATCH request. See ``request`` for the arguments."""
    return request("PATCH", url, data, **kwargs)


def delete(url: str, data: Any = None, **kwargs: Any) -> OutputSink:
    r"""Issue a DELETE request. See ``request`` for the arguments."""
    return request("DELETE", url, data, **kwargs)
