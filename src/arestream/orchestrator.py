r"""Contain the orchestrator driving the physical exchanges of a
logical request.

The retry logic is an explicit loop: every physical response is turned
into a ``RetryDecision`` (redirect, reauthenticate, proceed or fail),
and the loop issues the next exchange until a terminal response is
reached. The number of iterations is bounded by the redirect budget
plus one authentication retry.
"""

from __future__ import annotations

__all__ = ["Orchestrator"]

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import httpx

from arestream.auth import ChallengeNegotiator
from arestream.config import REDIRECT_STATUS_CODES, UNAUTHORIZED_STATUS_CODE
from arestream.exceptions import (
    HttpRequestError,
    MaxRedirectsError,
    RequestTimeoutError,
    TransportError,
)
from arestream.models import (
    Fail,
    Proceed,
    Reauthenticate,
    Redirect,
    RequestState,
    ResponseEnvelope,
)
from arestream.pipeline import PipelineBuilder
from arestream.registry import DEFAULT_REGISTRIES, StageRegistries
from arestream.sink import SinkClosedError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from arestream.aggregator import ResponseAggregator
    from arestream.auth import AuthNegotiator
    from arestream.models import RequestContext, RetryDecision
    from arestream.options import RequestOptions
    from arestream.pipeline import Pipeline
    from arestream.sink import OutputSink
    from arestream.transport import Exchange, Transport

logger: logging.Logger = logging.getLogger(__name__)

# Request headers describing a body, dropped when a redirect turns the request into a GET
_BODY_HEADERS = ("content-type", "content-length")


class Orchestrator:
    r"""Run logical requests over a transport.

    An orchestrator holds no per-request state and can run several
    logical requests concurrently.

    Args:
        transport: The transport issuing the physical exchanges.
        registries: The registries used to build the response pipeline.
        negotiator: The negotiator answering authentication challenges.
            ``ChallengeNegotiator`` is used if ``None``.

    Example:
        ```pycon
        >>> import asyncio
        >>> import httpx
        >>> from arestream.options import RequestOptions, build_context
        >>> from arestream.orchestrator import Orchestrator
        >>> from arestream.sink import OutputSink
        >>> from arestream.transport import HttpxTransport
        >>> async def example():
        ...     async with httpx.AsyncClient() as client:
        ...         orchestrator = Orchestrator(HttpxTransport(client))
        ...         sink = OutputSink()
        ...         context = build_context("GET", "https://example.com")
        ...         task = asyncio.create_task(orchestrator.run(context, RequestOptions(), sink))
        ...         body = b"".join(await sink.read())
        ...         await task
        ...         return body
        ...
        >>> asyncio.run(example())  # doctest: +SKIP

        ```
    """

    def __init__(
        self,
        transport: Transport,
        registries: StageRegistries = DEFAULT_REGISTRIES,
        negotiator: AuthNegotiator | None = None,
    ) -> None:
        self._transport = transport
        self._builder = PipelineBuilder(registries)
        self._negotiator = negotiator or ChallengeNegotiator()

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(transport={self._transport!r})"

    async def run(
        self,
        context: RequestContext,
        options: RequestOptions,
        sink: OutputSink,
        aggregator: ResponseAggregator | None = None,
    ) -> RequestState:
        r"""Run one logical request until it completes or fails.

        Errors are never raised: they end the output sink and, if an
        aggregator is engaged, are delivered to its callback.

        Args:
            context: The context of the logical request. It is updated
                between physical exchanges.
            options: The request options.
            sink: The output sink receiving the decoded body.
            aggregator: The optional aggregator buffering the sink for
                a completion callback.

        Returns:
            ``RequestState.COMPLETED`` or ``RequestState.FAILED``.
        """
        try:
            exchange = await self._exchange_until_terminal(context)
        except HttpRequestError as exc:
            logger.debug(f"{context.method} request to {context.url} failed: {exc}")
            await sink.fail(exc)
            if aggregator is not None:
                aggregator.fail(exc)
            return RequestState.FAILED

        try:
            return await self._deliver(context, exchange, options, sink, aggregator)
        finally:
            await exchange.aclose()

    def decide(self, context: RequestContext, exchange: Exchange) -> RetryDecision:
        r"""Decide what to do with one physical response.

        Rules are evaluated in order: redirect, reauthenticate, then
        proceed.

        Args:
            context: The context of the logical request.
            exchange: The physical response.

        Returns:
            The retry decision.
        """
        status = exchange.status_code
        location = exchange.headers.get("location")
        if status in REDIRECT_STATUS_CODES and location:
            if context.attempt <= context.redirect_budget:
                return Redirect(context.url.join(location))
            if context.redirect_budget > 0:
                return Fail(
                    MaxRedirectsError(
                        method=context.method,
                        url=str(context.url),
                        message=f"Max redirects reached. Possible loop in: {location}",
                        status_code=status,
                        location=location,
                    )
                )
            # Redirects disabled: the redirect response itself is terminal
            return Proceed()

        challenge = exchange.headers.get("www-authenticate")
        if (
            status == UNAUTHORIZED_STATUS_CODE
            and challenge
            and context.credentials is not None
            and "authorization" not in context.headers
        ):
            username, password = context.credentials
            header = self._negotiator.negotiate(
                challenge, username, password, context.method, context.path
            )
            if header:
                return Reauthenticate(header)
            logger.debug(f"Cannot answer authentication challenge {challenge!r}")
        return Proceed()

    async def _exchange_until_terminal(self, context: RequestContext) -> Exchange:
        state = RequestState.IDLE
        while True:
            exchange = await self._send(context)
            logger.debug(
                f"Got status {exchange.status_code} from {context.url} "
                f"({state.value} -> {RequestState.SENT.value})"
            )
            state = RequestState.SENT
            decision = self.decide(context, exchange)
            if isinstance(decision, Proceed):
                return exchange

            await exchange.aclose()
            if isinstance(decision, Fail):
                raise decision.error
            if isinstance(decision, Redirect):
                state = RequestState.REDIRECTING
                logger.debug(
                    f"Redirect #{context.attempt} from {context.url} to {decision.url} "
                    f"(status {exchange.status_code})"
                )
                context.attempt += 1
                context.method = "GET"
                context.body = None
                for key in _BODY_HEADERS:
                    context.headers.pop(key, None)
                context.url = decision.url
            elif isinstance(decision, Reauthenticate):
                state = RequestState.AUTHENTICATING
                logger.debug(f"Answering authentication challenge from {context.url}")
                context.headers["Authorization"] = decision.header

    async def _send(self, context: RequestContext) -> Exchange:
        r"""Issue one physical exchange and wait for its headers.

        The exchange is aborted if the headers do not arrive within
        ``context.timeout`` seconds.
        """
        logger.debug(f"Making request #{context.attempt}: {context.method} {context.url}")
        exchange = self._transport.exchange(
            context.method, context.url, context.headers, context.body
        )
        try:
            if context.timeout > 0:
                return await asyncio.wait_for(exchange, timeout=context.timeout)
            return await exchange
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(
                method=context.method,
                url=str(context.url),
                message=(
                    f"{context.method} request to {context.url} timed out "
                    f"after {context.timeout}s"
                ),
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                method=context.method,
                url=str(context.url),
                message=f"{context.method} request to {context.url} failed: {exc}",
                cause=exc,
            ) from exc

    async def _deliver(
        self,
        context: RequestContext,
        exchange: Exchange,
        options: RequestOptions,
        sink: OutputSink,
        aggregator: ResponseAggregator | None,
    ) -> RequestState:
        pipeline = self._builder.build(context, exchange.headers, options)
        envelope = ResponseEnvelope(
            status_code=exchange.status_code,
            headers=exchange.headers,
            content_type=pipeline.content_type,
            url=exchange.url,
        )
        sink.start(pipeline.mode, envelope)

        pump = self._pump(context, exchange, pipeline, sink, aggregator)
        if aggregator is None:
            return await pump
        state, _ = await asyncio.gather(pump, aggregator.consume(sink, pipeline))
        return state

    async def _pump(
        self,
        context: RequestContext,
        exchange: Exchange,
        pipeline: Pipeline,
        sink: OutputSink,
        aggregator: ResponseAggregator | None,
    ) -> RequestState:
        r"""Stream the raw body through the taps and the pipeline into
        the sink."""
        try:
            with contextlib.ExitStack() as stack:
                taps = []
                if aggregator is not None:
                    taps.append(aggregator)
                if context.output and exchange.status_code == httpx.codes.OK:
                    logger.debug(f"Writing raw response body to {context.output}")
                    taps.append(stack.enter_context(open(context.output, "wb")))  # noqa: SIM115

                async for chunk in self._iter_raw(context, exchange):
                    for tap in taps:
                        tap.write(chunk)
                    for item in pipeline.feed(chunk):
                        await sink.put(item)
                for item in pipeline.flush():
                    await sink.put(item)
        except SinkClosedError:
            logger.debug(f"The consumer closed the sink of {context.url}, stopping the body")
            return RequestState.FAILED
        except (HttpRequestError, OSError) as exc:
            await sink.fail(exc)
            return RequestState.FAILED
        await sink.close()
        return RequestState.COMPLETED

    async def _iter_raw(
        self, context: RequestContext, exchange: Exchange
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in exchange.aiter_raw():
                yield chunk
        except httpx.RequestError as exc:
            raise TransportError(
                method=context.method,
                url=str(context.url),
                message=f"Reading the response of {context.url} failed: {exc}",
                cause=exc,
            ) from exc
