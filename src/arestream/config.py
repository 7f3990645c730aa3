r"""Contain the default configurations for HTTP exchanges and response
pipelines."""

from __future__ import annotations

__all__ = [
    "DEFAULT_ACCEPT",
    "DEFAULT_CHARSET",
    "DEFAULT_CONNECTION",
    "DEFAULT_ENCODING",
    "DEFAULT_FOLLOW_REDIRECTS",
    "DEFAULT_REDIRECT_BUDGET",
    "DEFAULT_SINK_BUFFER_SIZE",
    "DEFAULT_TIMEOUT",
    "REDIRECT_STATUS_CODES",
    "UNAUTHORIZED_STATUS_CODE",
]

DEFAULT_TIMEOUT = 10.0

# Redirects are disabled unless requested
DEFAULT_REDIRECT_BUDGET = 0
# Budget used when ``follow=True`` is passed
DEFAULT_FOLLOW_REDIRECTS = 10
REDIRECT_STATUS_CODES = (301, 302)
UNAUTHORIZED_STATUS_CODE = 401

# Charset assumed when the Content-Type header does not carry one
DEFAULT_CHARSET = "iso-8859-1"
DEFAULT_ENCODING = "utf-8"

DEFAULT_ACCEPT = "*/*"
DEFAULT_CONNECTION = "close"

# Maximum number of items buffered in the output sink before the pump waits
DEFAULT_SINK_BUFFER_SIZE = 16
