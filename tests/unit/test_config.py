r"""Unit tests for configuration constants."""

from __future__ import annotations

from arestream import (
    DEFAULT_CHARSET,
    DEFAULT_REDIRECT_BUDGET,
    DEFAULT_TIMEOUT,
    REDIRECT_STATUS_CODES,
)
from arestream.config import (
    DEFAULT_FOLLOW_REDIRECTS,
    DEFAULT_SINK_BUFFER_SIZE,
    UNAUTHORIZED_STATUS_CODE,
)

###################################
#     Tests for Configuration     #
###################################


def test_default_timeout_value() -> None:
    """Test the DEFAULT_TIMEOUT value."""
    assert DEFAULT_TIMEOUT == 10.0


def test_default_redirect_budget_disables_redirects() -> None:
    """Test that redirects are disabled by default."""
    assert DEFAULT_REDIRECT_BUDGET == 0


def test_default_follow_redirects_value() -> None:
    """Test the budget used when follow=True."""
    assert DEFAULT_FOLLOW_REDIRECTS == 10


def test_redirect_status_codes_exact_value() -> None:
    """Test the exact value of REDIRECT_STATUS_CODES."""
    assert REDIRECT_STATUS_CODES == (301, 302)


def test_redirect_status_codes_is_tuple() -> None:
    """Test that REDIRECT_STATUS_CODES is a tuple."""
    assert isinstance(REDIRECT_STATUS_CODES, tuple)


def test_unauthorized_status_code_value() -> None:
    assert UNAUTHORIZED_STATUS_CODE == 401


def test_default_charset_value() -> None:
    """Test that the fallback charset is ISO-8859-1."""
    assert DEFAULT_CHARSET == "iso-8859-1"


def test_default_sink_buffer_size_is_positive() -> None:
    assert DEFAULT_SINK_BUFFER_SIZE > 0
