r"""Unit tests for the request options and the request context
normalization."""

from __future__ import annotations

import json

import httpx
import pytest

from arestream import DEFAULT_OPTIONS, RequestOptions
from arestream.options import (
    build_context,
    default_user_agent,
    encode_body,
    validate_options,
)

####################################
#     Tests for RequestOptions     #
####################################


def test_request_options_defaults() -> None:
    """Test the default request options."""
    options = RequestOptions()
    assert options.follow == 0
    assert options.timeout == 10.0
    assert options.decode_response
    assert options.parse_response
    assert not options.strict_parsing
    assert not options.compressed


@pytest.mark.parametrize(("follow", "budget"), [(0, 0), (3, 3), (True, 10), (False, 0)])
def test_request_options_redirect_budget(follow: int | bool, budget: int) -> None:
    assert RequestOptions(follow=follow).redirect_budget == budget


def test_request_options_with_defaults_returns_copy() -> None:
    """Test that with_defaults leaves the original options unchanged."""
    options = DEFAULT_OPTIONS.with_defaults(follow=5, timeout=1.0)
    assert options.follow == 5
    assert options.timeout == 1.0
    assert DEFAULT_OPTIONS.follow == 0
    assert DEFAULT_OPTIONS.timeout == 10.0


def test_request_options_with_defaults_unknown_field() -> None:
    with pytest.raises(TypeError):
        DEFAULT_OPTIONS.with_defaults(retries=3)


def test_request_options_are_frozen() -> None:
    with pytest.raises(AttributeError):
        DEFAULT_OPTIONS.follow = 3  # type: ignore[misc]


######################################
#     Tests for validate_options     #
######################################


def test_validate_options_valid() -> None:
    validate_options(RequestOptions(follow=5, timeout=0))


def test_validate_options_negative_follow() -> None:
    with pytest.raises(ValueError, match=r"follow must be >= 0, got -1"):
        validate_options(RequestOptions(follow=-1))


def test_validate_options_negative_timeout() -> None:
    with pytest.raises(ValueError, match=r"timeout must be >= 0, got -0.5"):
        validate_options(RequestOptions(timeout=-0.5))


def test_validate_options_sink_buffer_size() -> None:
    with pytest.raises(ValueError, match=r"sink_buffer_size must be > 0, got 0"):
        validate_options(RequestOptions(sink_buffer_size=0))


def test_validate_options_unknown_auth() -> None:
    with pytest.raises(ValueError, match=r"auth must be one of"):
        validate_options(RequestOptions(auth="ntlm"))


#################################
#     Tests for encode_body     #
#################################


def test_encode_body_none() -> None:
    headers = httpx.Headers()
    assert encode_body(None, DEFAULT_OPTIONS, headers) is None
    assert "content-length" not in headers


def test_encode_body_bytes() -> None:
    headers = httpx.Headers()
    assert encode_body(b"raw", DEFAULT_OPTIONS, headers) == b"raw"
    assert headers["content-length"] == "3"


def test_encode_body_str_uses_encoding() -> None:
    headers = httpx.Headers()
    body = encode_body("café", RequestOptions(encoding="latin-1"), headers)
    assert body == "café".encode("latin-1")
    assert headers["content-length"] == "4"


def test_encode_body_mapping_as_form() -> None:
    """Test that mappings are encoded as form data by default."""
    headers = httpx.Headers()
    body = encode_body({"a": "1", "b": ["x", "y"]}, DEFAULT_OPTIONS, headers)
    assert body == b"a=1&b=x&b=y"
    assert headers["content-type"] == "application/x-www-form-urlencoded"


def test_encode_body_mapping_as_json() -> None:
    headers = httpx.Headers()
    body = encode_body({"a": 1}, RequestOptions(json=True), headers)
    assert json.loads(body) == {"a": 1}
    assert headers["content-type"] == "application/json"


def test_encode_body_keeps_content_type() -> None:
    """Test that an explicit Content-Type header is kept."""
    headers = httpx.Headers({"Content-Type": "text/csv"})
    encode_body("a,b", DEFAULT_OPTIONS, headers)
    assert headers["content-type"] == "text/csv"


###################################
#     Tests for build_context     #
###################################


def test_build_context_defaults() -> None:
    """Test the context of a request with default options."""
    context = build_context("get", "https://example.com/data")
    assert context.method == "GET"
    assert context.url == httpx.URL("https://example.com/data")
    assert context.attempt == 1
    assert context.redirect_budget == 0
    assert context.timeout == 10.0
    assert context.body is None
    assert context.credentials is None
    assert context.headers["accept"] == "*/*"
    assert context.headers["connection"] == "close"
    assert context.headers["accept-encoding"] == "identity"
    assert context.headers["user-agent"] == default_user_agent()


def test_build_context_prepends_http_scheme() -> None:
    assert str(build_context("GET", "example.com/a").url) == "http://example.com/a"


def test_build_context_compressed() -> None:
    context = build_context("GET", "https://example.com", options=RequestOptions(compressed=True))
    assert context.headers["accept-encoding"] == "gzip, deflate"


def test_build_context_custom_headers_applied_last() -> None:
    """Test that custom headers override the default headers."""
    context = build_context(
        "GET",
        "https://example.com",
        options=RequestOptions(headers={"Accept": "application/json", "X-Trace": "1"}),
    )
    assert context.headers["accept"] == "application/json"
    assert context.headers["x-trace"] == "1"


def test_build_context_custom_user_agent() -> None:
    context = build_context("GET", "https://example.com", options=RequestOptions(user_agent="bot"))
    assert context.headers["user-agent"] == "bot"


def test_build_context_preemptive_basic_auth() -> None:
    """Test that credentials are sent pre-emptively by default."""
    context = build_context(
        "GET", "https://example.com", options=RequestOptions(username="user", password="pass")
    )
    assert context.headers["authorization"] == "Basic dXNlcjpwYXNz"
    assert context.credentials is None


def test_build_context_proxy_basic_auth() -> None:
    context = build_context(
        "GET",
        "https://example.com",
        options=RequestOptions(username="user", password="pass", proxy="http://proxy:3128"),
    )
    assert context.headers["proxy-authorization"] == "Basic dXNlcjpwYXNz"
    assert "authorization" not in context.headers


@pytest.mark.parametrize("auth", ["auto", "digest"])
def test_build_context_negotiated_auth_keeps_credentials(auth: str) -> None:
    """Test that negotiated authentication waits for the challenge."""
    context = build_context(
        "GET",
        "https://example.com",
        options=RequestOptions(username="user", password="pass", auth=auth),
    )
    assert context.credentials == ("user", "pass")
    assert "authorization" not in context.headers


def test_build_context_incomplete_credentials() -> None:
    context = build_context("GET", "https://example.com", options=RequestOptions(username="user"))
    assert context.credentials is None
    assert "authorization" not in context.headers


def test_build_context_body() -> None:
    context = build_context("post", "https://example.com", {"q": "1"})
    assert context.method == "POST"
    assert context.body == b"q=1"
    assert context.headers["content-length"] == "3"


def test_build_context_invalid_options() -> None:
    with pytest.raises(ValueError, match=r"follow must be >= 0"):
        build_context("GET", "https://example.com", options=RequestOptions(follow=-2))


def test_default_user_agent() -> None:
    assert default_user_agent().startswith("arestream/")
