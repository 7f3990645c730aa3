from __future__ import annotations

import asyncio
import gzip
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from arestream import client as client_module

if TYPE_CHECKING:
    from collections.abc import Callable

    from arestream import ResponseEnvelope


class CallbackRecorder:
    r"""Record the invocations of a completion callback."""

    def __init__(self) -> None:
        self.calls: list[tuple[BaseException | None, ResponseEnvelope | None, Any]] = []
        self.event = asyncio.Event()

    def __call__(
        self, error: BaseException | None, response: ResponseEnvelope | None, body: Any
    ) -> None:
        self.calls.append((error, response, body))
        self.event.set()

    async def wait(self) -> tuple[BaseException | None, ResponseEnvelope | None, Any]:
        await asyncio.wait_for(self.event.wait(), timeout=5.0)
        await wait_background_requests()
        return self.calls[0]


async def wait_background_requests() -> None:
    r"""Wait until all the requests running in the background are
    done."""
    tasks = list(client_module._BACKGROUND_TASKS)
    if tasks:
        await asyncio.wait(tasks, timeout=5.0)


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def make_client() -> Callable[..., httpx.AsyncClient]:
    """Create clients answering with a mocked handler."""

    def factory(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def gzip_json() -> bytes:
    return gzip.compress(b'{"name": "arestream", "tags": ["http", "stream"]}')
