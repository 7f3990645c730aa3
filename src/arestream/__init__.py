r"""arestream - Streaming HTTP client with transparent redirects,
authentication retries and response decoding pipelines.

This package turns one logical HTTP request into a reliable exchange.
Built on top of the httpx library, it follows redirects and answers
authentication challenges in an explicit state machine, then decodes the
response body through a pipeline assembled from the response headers.

Key Features:
    - Redirect following with a configurable budget (301 and 302)
    - One automatic retry on Basic or Digest authentication challenges
    - gzip and deflate decompression, JSON and XML parsing, charset
      decoding to UTF-8, selected from immutable registries
    - Live output stream with backpressure, or one aggregated body
      delivered to a completion callback
    - Timeout on the response headers and raw body output files

Example:
    ```pycon
    >>> import asyncio
    >>> from arestream import fetch
    >>> response, body = asyncio.run(fetch("GET", "https://api.example.com/data"))  # doctest: +SKIP

    ```
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_CHARSET",
    "DEFAULT_OPTIONS",
    "DEFAULT_REDIRECT_BUDGET",
    "DEFAULT_REGISTRIES",
    "DEFAULT_TIMEOUT",
    "REDIRECT_STATUS_CODES",
    "ChallengeNegotiator",
    "HttpRequestError",
    "MaxRedirectsError",
    "Orchestrator",
    "OutputSink",
    "PipelineBuilder",
    "RequestOptions",
    "RequestTimeoutError",
    "ResponseEnvelope",
    "SinkMode",
    "StageError",
    "StageRegistries",
    "StageRegistry",
    "TransportError",
    "__version__",
    "delete",
    "fetch",
    "get",
    "head",
    "patch",
    "post",
    "put",
    "request",
]

from importlib.metadata import PackageNotFoundError, version

from arestream.auth import ChallengeNegotiator
from arestream.client import delete, fetch, get, head, patch, post, put, request
from arestream.config import (
    DEFAULT_CHARSET,
    DEFAULT_REDIRECT_BUDGET,
    DEFAULT_TIMEOUT,
    REDIRECT_STATUS_CODES,
)
from arestream.exceptions import (
    HttpRequestError,
    MaxRedirectsError,
    RequestTimeoutError,
    StageError,
    TransportError,
)
from arestream.models import ResponseEnvelope, SinkMode
from arestream.options import DEFAULT_OPTIONS, RequestOptions
from arestream.orchestrator import Orchestrator
from arestream.pipeline import PipelineBuilder
from arestream.registry import DEFAULT_REGISTRIES, StageRegistries, StageRegistry
from arestream.sink import OutputSink

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
