"""
Bounded worker pool that fetches every URL exactly once.

URLs are published onto one work queue in input order, followed by one
sentinel per worker. Workers never touch the output: they hand each token to
a single collector task, which joins them in arrival order.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
import structlog

from .fetcher import fetch_and_digest

logger = structlog.get_logger(__name__)

FetchFunc = Callable[[httpx.AsyncClient, str], Awaitable[str]]

SEPARATOR = " "

# closes a queue
_DONE = None


class Dispatcher:
    """Runs `worker_count` workers over a shared queue of URLs."""

    def __init__(self, client: httpx.AsyncClient, worker_count: int, fetch: FetchFunc = fetch_and_digest):
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")
        self.client = client
        self.worker_count = worker_count
        self.fetch = fetch

    async def process(self, urls: Sequence[str]) -> str:
        """Fetch all urls and return the space-joined result tokens.

        Blocks until every worker has drained the queue. Token order follows
        completion, not input order.
        """
        work: asyncio.Queue[Optional[str]] = asyncio.Queue()
        results: asyncio.Queue[Optional[str]] = asyncio.Queue()

        collector = asyncio.create_task(self._collect(results))
        workers = [
            asyncio.create_task(self._worker(worker_id, work, results))
            for worker_id in range(self.worker_count)
        ]
        logger.debug("dispatcher_started", workers=self.worker_count, urls=len(urls))

        for url in urls:
            work.put_nowait(url)
        for _ in workers:
            work.put_nowait(_DONE)

        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            collector.cancel()
            await asyncio.gather(*workers, collector, return_exceptions=True)
            raise

        results.put_nowait(_DONE)
        output = await collector
        logger.debug("dispatcher_finished", urls=len(urls))
        return output

    async def _worker(self, worker_id: int, work: asyncio.Queue, results: asyncio.Queue):
        processed = 0
        while True:
            url = await work.get()
            if url is _DONE:
                break
            token = await self.fetch(self.client, url)
            results.put_nowait(token)
            processed += 1
        logger.debug("worker_finished", worker=worker_id, processed=processed)

    async def _collect(self, results: asyncio.Queue) -> str:
        tokens: List[str] = []
        while True:
            token = await results.get()
            if token is _DONE:
                break
            tokens.append(token)
        return SEPARATOR.join(tokens)


async def process(client: httpx.AsyncClient, worker_count: int, urls: Sequence[str]) -> str:
    """Fetch urls with `worker_count` concurrent workers and join the results."""
    return await Dispatcher(client, worker_count).process(urls)
