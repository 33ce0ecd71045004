"""
Fetch a single URL and digest its body.

The client is supplied by the caller and already carries every timeout;
nothing here adds timeout logic of its own.
"""

import hashlib
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 8192  # 128 MD5 blocks of 64 bytes

ERROR_TIMEOUT = "timeout"
ERROR_UNKNOWN = "unknown"


class FetchResult:
    def __init__(self, url: str, digest: Optional[str] = None, error: Optional[str] = None):
        """Outcome for one URL: either a hex digest or an error reason."""
        self.url = url
        self.digest = digest
        self.error = error

    @classmethod
    def failed(cls, url: str, reason: str) -> "FetchResult":
        return cls(url=url, error=reason)

    @property
    def success(self) -> bool:
        """True when the body was read to the end and digested."""
        return self.error is None and self.digest is not None

    @property
    def token(self) -> str:
        """Render as `<url> <digest>` or `<url> error:<reason>`."""
        if self.success:
            return f"{self.url} {self.digest}"
        return f"{self.url} error:{self.error}"

    def __str__(self) -> str:
        return self.token

    def __repr__(self) -> str:
        return f"FetchResult(url={self.url!r}, digest={self.digest!r}, error={self.error!r})"


def _error_text(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class HTTPFetcher:
    def __init__(self, client: httpx.AsyncClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Wrap a shared, ready-to-use client. The fetcher never closes it."""
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._client = client
        self.chunk_size = chunk_size

    async def fetch(self, url: str) -> FetchResult:
        """GET the url and stream the body through MD5."""
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code != httpx.codes.OK:
                    logger.warning("fetch_failed", url=url, status_code=response.status_code)
                    return FetchResult.failed(url, str(response.status_code))
                return await self._digest_body(url, response)

        except httpx.TimeoutException as e:
            logger.warning("fetch_failed", url=url, reason=ERROR_TIMEOUT, error=_error_text(e))
            return FetchResult.failed(url, ERROR_TIMEOUT)

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("fetch_failed", url=url, reason=ERROR_UNKNOWN, error=_error_text(e))
            return FetchResult.failed(url, ERROR_UNKNOWN)

    async def _digest_body(self, url: str, response: httpx.Response) -> FetchResult:
        hasher = hashlib.md5()
        size = 0
        try:
            async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                hasher.update(chunk)
                size += len(chunk)
        except httpx.HTTPError as e:
            # partial digest is dropped
            error = _error_text(e)
            logger.warning("body_read_failed", url=url, bytes_read=size, error=error)
            return FetchResult.failed(url, error)

        digest = hasher.hexdigest()
        logger.debug("fetch_succeeded", url=url, size=size, digest=digest)
        return FetchResult(url=url, digest=digest)


async def fetch_and_digest(client: httpx.AsyncClient, url: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Fetch one URL and return its result token."""
    result = await HTTPFetcher(client, chunk_size=chunk_size).fetch(url)
    return result.token
