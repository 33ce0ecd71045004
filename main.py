"""
Entrypoint: load config, validate input, build the http client, run the workers
and print one line of results to stdout.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog
from dotenv import load_dotenv

from batchfetch.config import Config
from batchfetch.dispatcher import Dispatcher
from batchfetch.errors import InputError
from batchfetch.fetcher import DEFAULT_CHUNK_SIZE, HTTPFetcher
from batchfetch.logs import configure_logging
from batchfetch.transport import build_client
from batchfetch.urls import DEFAULT_PARALLEL, PARALLEL_LIMIT, get_parallel_count, get_urls

logger = structlog.get_logger("batchfetch")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="batchfetch",
        description="Fetch urls in parallel and print the md5 of each response body.",
    )
    parser.add_argument("urls", nargs="*", help="urls or bare hostnames (http:// is added when missing)")
    parser.add_argument("-parallel", "--parallel", type=int, default=None, help="count of parallel requests")
    parser.add_argument("--config", default=None, help="path to a config.yaml")
    parser.add_argument("--log-level", default=None, help="log level for stderr output")
    parser.add_argument("--json-logs", action="store_true", default=None, help="emit logs as JSON")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, config: Config, transport=None) -> str:
    """Validate the input and fetch every url. Raises InputError before any request."""
    urls = get_urls(args.urls)

    dispatcher_config = config.dispatcher
    default_parallel = int(dispatcher_config.get('default_parallel', DEFAULT_PARALLEL))
    requested = args.parallel if args.parallel is not None else default_parallel
    parallel = get_parallel_count(
        requested,
        len(urls),
        logger,
        default=default_parallel,
        limit=int(dispatcher_config.get('parallel_limit', PARALLEL_LIMIT)),
    )

    chunk_size = int(config.fetcher.get('chunk_size', DEFAULT_CHUNK_SIZE))
    logger.info("batch_started", urls=len(urls), parallel=parallel)

    async with build_client(config.fetcher, transport=transport) as client:
        fetcher = HTTPFetcher(client, chunk_size=chunk_size)

        async def fetch(_client, url):
            return (await fetcher.fetch(url)).token

        return await Dispatcher(client, parallel, fetch=fetch).process(urls)


def main(argv: Optional[List[str]] = None) -> None:
    """Initialize dependencies and run one batch"""
    load_dotenv()
    args = parse_args(argv)

    try:
        config = Config(args.config)
    except (FileNotFoundError, ValueError) as e:
        configure_logging()
        logger.error("config_load_failed", error=str(e))
        sys.exit(1)

    log_config = config.logging
    configure_logging(
        level=args.log_level or log_config.get('level', 'INFO'),
        json_logs=args.json_logs if args.json_logs is not None else bool(log_config.get('json', False)),
    )

    try:
        output = asyncio.run(run(args, config))
    except InputError as e:
        logger.error("invalid_input", error=str(e))
        sys.exit(1)

    print(output)


if __name__ == "__main__":
    main()
