from __future__ import annotations

import asyncio
import logging
import sys

import arestream

logger: logging.Logger = logging.getLogger(__name__)

# Use httpbin.org for real HTTP testing
HTTPBIN_URL = "https://httpbin.org"


def check_fetch() -> None:
    logger.info("Checking fetch...")
    response, body = asyncio.run(arestream.fetch("GET", f"{HTTPBIN_URL}/get"))
    assert response.status_code == 200
    assert body["url"] == f"{HTTPBIN_URL}/get"


def check_stream() -> None:
    logger.info("Checking get (stream mode)...")

    async def read() -> bytes:
        sink = arestream.get(f"{HTTPBIN_URL}/bytes/1024")
        return b"".join(await sink.read())

    assert len(asyncio.run(read())) == 1024


def main() -> None:
    r"""Run all package checks to validate installation and
    functionality."""
    try:
        check_fetch()
        check_stream()

        logger.info("✅ All package checks passed successfully!")
    except Exception:
        logger.exception("❌ Package check failed")
        sys.exit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
