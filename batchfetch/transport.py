"""
Build the shared httpx client used by every worker.

httpx has connect/read/write/pool timeouts but no limit on a request as a
whole nor one for the response headers alone, so the network transport is
wrapped in DeadlineTransport, which bounds the wait for the headers and
checks every body read against one request deadline.
"""

import asyncio
from typing import Any, Dict

import httpx
import structlog

logger = structlog.get_logger(__name__)

REQUEST_TIMEOUT = 5.0
CONNECT_TIMEOUT = 3.0
TLS_HANDSHAKE_TIMEOUT = 1.0
RESPONSE_HEADER_TIMEOUT = 1.0
MAX_IDLE_CONNECTIONS = 1
USER_AGENT = "batchfetch/0.1"


async def _next_chunk(iterator):
    return await iterator.__anext__()


class _DeadlineStream(httpx.AsyncByteStream):
    """Response body whose reads all share the request deadline."""

    def __init__(self, stream: httpx.AsyncByteStream, deadline: float, request: httpx.Request):
        self._stream = stream
        self._deadline = deadline
        self._request = request

    async def __aiter__(self):
        loop = asyncio.get_running_loop()
        iterator = self._stream.__aiter__()
        while True:
            remaining = self._deadline - loop.time()
            if remaining <= 0:
                raise httpx.ReadTimeout("request deadline exceeded while reading body", request=self._request)
            try:
                chunk = await asyncio.wait_for(_next_chunk(iterator), remaining)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError:
                raise httpx.ReadTimeout(
                    "request deadline exceeded while reading body", request=self._request
                ) from None
            yield chunk

    async def aclose(self) -> None:
        await self._stream.aclose()


class DeadlineTransport(httpx.AsyncBaseTransport):
    """Limit each request, body included, to `timeout` seconds.

    `response_timeout`, when set, is a tighter bound on the wait for the
    response headers only; the body is bounded by `timeout` alone.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport, timeout: float, response_timeout: float = None):
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if response_timeout is not None and response_timeout <= 0:
            raise ValueError(f"response_timeout must be positive, got {response_timeout}")
        self._transport = transport
        self.timeout = timeout
        self.response_timeout = timeout if response_timeout is None else min(timeout, response_timeout)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        deadline = asyncio.get_running_loop().time() + self.timeout
        try:
            response = await asyncio.wait_for(self._transport.handle_async_request(request), self.response_timeout)
        except asyncio.TimeoutError:
            raise httpx.TimeoutException(
                f"no response within {self.response_timeout}s", request=request
            ) from None

        return httpx.Response(
            status_code=response.status_code,
            headers=response.headers,
            stream=_DeadlineStream(response.stream, deadline, request),
            extensions=response.extensions,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()


def response_timeout(fetcher_config: Dict[str, Any]) -> float:
    """Budget for getting response headers: connect + TLS handshake + header wait."""
    return (
        float(fetcher_config.get('connect_timeout', CONNECT_TIMEOUT))
        + float(fetcher_config.get('tls_handshake_timeout', TLS_HANDSHAKE_TIMEOUT))
        + float(fetcher_config.get('response_header_timeout', RESPONSE_HEADER_TIMEOUT))
    )


def build_timeout(fetcher_config: Dict[str, Any]) -> httpx.Timeout:
    """Map the configured timeouts onto httpx's four phases.

    httpx does the TLS handshake inside its connect phase, so connect covers
    TCP + TLS. httpx's read timeout applies to body chunks as well as headers,
    so it gets the whole request budget; the header wait is bounded by
    DeadlineTransport instead.
    """
    request_timeout = float(fetcher_config.get('request_timeout', REQUEST_TIMEOUT))
    connect_timeout = float(fetcher_config.get('connect_timeout', CONNECT_TIMEOUT))
    tls_timeout = float(fetcher_config.get('tls_handshake_timeout', TLS_HANDSHAKE_TIMEOUT))
    return httpx.Timeout(
        connect=connect_timeout + tls_timeout,
        read=request_timeout,
        write=request_timeout,
        pool=request_timeout,
    )


def build_client(fetcher_config: Dict[str, Any] = None, transport: httpx.AsyncBaseTransport = None) -> httpx.AsyncClient:
    """Create the client shared read-only by all workers.

    `transport` replaces the network transport (tests pass an
    httpx.MockTransport); the request deadline is applied on top of it.
    """
    fetcher_config = fetcher_config or {}
    request_timeout = float(fetcher_config.get('request_timeout', REQUEST_TIMEOUT))
    max_idle = int(fetcher_config.get('max_idle_connections', MAX_IDLE_CONNECTIONS))
    user_agent = fetcher_config.get('user_agent', USER_AGENT)

    if transport is None:
        transport = httpx.AsyncHTTPTransport(
            limits=httpx.Limits(max_keepalive_connections=max_idle),
            retries=0,
        )

    timeout = build_timeout(fetcher_config)
    logger.debug(
        "http_client_created",
        request_timeout=request_timeout,
        connect_timeout=timeout.connect,
        read_timeout=timeout.read,
        response_timeout=response_timeout(fetcher_config),
        max_idle_connections=max_idle,
    )
    return httpx.AsyncClient(
        transport=DeadlineTransport(transport, request_timeout, response_timeout(fetcher_config)),
        timeout=timeout,
        follow_redirects=True,
        headers={'User-Agent': user_agent},
    )
