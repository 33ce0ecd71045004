"""
Shared fixtures: in-memory httpx transports and streams, no real sockets.
"""

import asyncio
import hashlib
import logging

import httpx
import pytest
import structlog


def md5_hex(body: bytes) -> str:
    return hashlib.md5(body).hexdigest()


def parse_tokens(output: str) -> dict:
    """Split an aggregate line into {url: digest-or-error}. Fails on duplicates."""
    parts = output.split(" ")
    assert len(parts) % 2 == 0, f"odd number of fields in {output!r}"
    result = {}
    for url, value in zip(parts[0::2], parts[1::2]):
        assert url not in result, f"duplicate token for {url}"
        result[url] = value
    return result


class ChunkStream(httpx.AsyncByteStream):
    """Yields the given chunks, optionally pausing before each, then raises `error` if set."""

    def __init__(self, chunks, error: Exception = None, delay: float = 0):
        self.chunks = list(chunks)
        self.error = error
        self.delay = delay
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def body_handler(bodies: dict):
    """MockTransport handler serving a fixed body per url, 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        body = bodies.get(url, bodies.get(url.rstrip("/")))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    return handler


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def bodies():
    return {
        "http://one": b"one",
        "http://two": b"two",
    }


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()
