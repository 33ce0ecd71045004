"""
Turn raw command-line arguments into a validated, duplicate-free URL list,
and pick how many workers to run for it.
"""

import re
from typing import List, Sequence

import httpx
import structlog

from .errors import InvalidURLError, NoURLsError

logger = structlog.get_logger(__name__)

DEFAULT_PARALLEL = 1
PARALLEL_LIMIT = 10

DEFAULT_SCHEME = "http://"
ALLOWED_SCHEMES = ("http", "https")

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def normalize_url(value: str) -> str:
    """Prepend http:// to bare hosts and check the result is a fetchable URL."""
    value = value.strip()
    if not value:
        raise InvalidURLError(value, "empty")

    if _SCHEME_RE.match(value):
        scheme, sep, rest = value.partition("://")
        value = scheme.lower() + sep + rest
    else:
        value = DEFAULT_SCHEME + value

    try:
        parsed = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise InvalidURLError(value, str(e)) from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidURLError(value, f"unsupported scheme: {parsed.scheme}")
    if not parsed.host:
        raise InvalidURLError(value, "missing host")
    return value


def get_urls(raw: Sequence[str]) -> List[str]:
    """Normalize raw arguments, keeping the first occurrence of each URL."""
    if not raw:
        raise NoURLsError()

    result = []
    seen = set()
    for value in raw:
        url = normalize_url(value)
        if url in seen:
            logger.debug("duplicate_url_skipped", url=url)
            continue
        seen.add(url)
        result.append(url)
    return result


def get_parallel_count(
    parallel_count: int,
    urls_count: int,
    logger=logger,
    *,
    default: int = DEFAULT_PARALLEL,
    limit: int = PARALLEL_LIMIT,
) -> int:
    """Clamp the requested worker count to [1, limit] and to urls_count.

    Out-of-range values are corrected and reported through `logger`, never
    rejected.
    """
    if parallel_count < 1:
        logger.warning(
            "parallel_count_below_minimum",
            requested=parallel_count,
            using=default,
        )
        parallel_count = default
    if parallel_count > limit:
        logger.warning(
            "parallel_count_above_limit",
            requested=parallel_count,
            limit=limit,
        )
        parallel_count = limit
    if parallel_count > urls_count:
        logger.warning(
            "parallel_count_above_url_count",
            requested=parallel_count,
            urls_count=urls_count,
        )
        parallel_count = urls_count
    return parallel_count
