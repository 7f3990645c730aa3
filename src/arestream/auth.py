r"""Contain the credential header builders and the negotiator used to
answer ``WWW-Authenticate`` challenges.

The credentials are computed by the ``httpx`` authentication flows, so
every scheme and algorithm supported by ``httpx.BasicAuth`` and
``httpx.DigestAuth`` is supported here.
"""

from __future__ import annotations

__all__ = ["AuthNegotiator", "ChallengeNegotiator", "basic_auth_header"]

import logging
from typing import Protocol

import httpx

logger: logging.Logger = logging.getLogger(__name__)

# Only the request target of this URL enters the credentials
_ORIGIN = httpx.URL("http://localhost/")


class AuthNegotiator(Protocol):
    r"""Build a credential header value from an authentication
    challenge."""

    def negotiate(
        self, challenge: str, username: str, password: str, method: str, path: str
    ) -> str | None:
        r"""Return the ``Authorization`` header value, or ``None`` if the
        challenge scheme is not supported."""


def _authorization(
    auth: httpx.Auth, request: httpx.Request, challenge: str | None = None
) -> str | None:
    flow = auth.sync_auth_flow(request)
    request = next(flow)
    if challenge is not None:
        response = httpx.Response(401, headers={"WWW-Authenticate": challenge}, request=request)
        try:
            request = flow.send(response)
        except StopIteration:
            return None
    return request.headers.get("Authorization")


def basic_auth_header(username: str, password: str) -> str:
    r"""Build a ``Basic`` credential header value.

    Args:
        username: The user name.
        password: The password.

    Returns:
        The header value.

    Example:
        ```pycon
        >>> from arestream.auth import basic_auth_header
        >>> basic_auth_header("user", "pass")
        'Basic dXNlcjpwYXNz'

        ```
    """
    return _authorization(httpx.BasicAuth(username, password), httpx.Request("GET", _ORIGIN))


class ChallengeNegotiator:
    r"""Answer ``Basic`` and ``Digest`` challenges.

    Any other scheme, or a ``Digest`` challenge that ``httpx`` cannot
    answer, yields ``None``, which lets the challenged response through
    as a terminal response.

    Example:
        ```pycon
        >>> from arestream.auth import ChallengeNegotiator
        >>> negotiator = ChallengeNegotiator()
        >>> negotiator.negotiate('Basic realm="api"', "user", "pass", "GET", "/")
        'Basic dXNlcjpwYXNz'
        >>> negotiator.negotiate('Bearer realm="api"', "user", "pass", "GET", "/")

        ```
    """

    def negotiate(
        self, challenge: str, username: str, password: str, method: str, path: str
    ) -> str | None:
        scheme = challenge.strip().partition(" ")[0].lower()
        if scheme == "basic":
            return basic_auth_header(username, password)
        if scheme != "digest":
            logger.debug(f"Unsupported authentication scheme: {scheme!r}")
            return None

        request = httpx.Request(method, _ORIGIN.copy_with(raw_path=path.encode("ascii")))
        try:
            return _authorization(httpx.DigestAuth(username, password), request, challenge)
        except (httpx.ProtocolError, NotImplementedError, KeyError, ValueError) as exc:
            logger.debug(f"Cannot answer digest challenge {challenge!r}: {exc}")
            return None
