from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from web_scrape_indexer.batch_indexer import DEFAULT_BATCH_SIZE
from web_scrape_indexer.config import Settings, load_settings
from web_scrape_indexer.fetchers import ENGINES, build_fetchers
from web_scrape_indexer.job_status import JobStatusStore
from web_scrape_indexer.logging_config import configure_logging
from web_scrape_indexer.orchestrator import JobOptions, run_job
from web_scrape_indexer.sharding import plan_shard_count, shard_urls
from web_scrape_indexer.vector_store import (
    CredentialsMissingError,
    VectorCredentials,
    VectorStoreClient,
    VectorStoreError,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="web-scrape-indexer",
        description="Scrape web pages and index them into Upstash Vector in small batches.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Scrape and index a list of URLs")
    run.add_argument("--urls", help="Comma-separated URLs")
    run.add_argument("--urls-json", help="JSON array of URLs (falls back to URLS_JSON)")
    run.add_argument("--brand", help="Brand slug namespacing the vectors (falls back to BRAND_SLUG)")
    run.add_argument("--job-id", help="Job id for status tracking (falls back to JOB_ID)")
    run.add_argument("--engine", choices=ENGINES, help="Extraction backend (falls back to SCRAPER_ENGINE)")
    run.add_argument("--concurrency", type=int, default=3, help="Pages fetched at once")
    run.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Pages per indexing batch")
    run.add_argument("--chunk-size", type=int, default=1000)
    run.add_argument("--chunk-overlap", type=int, default=200)
    run.add_argument("--callback-url", help="Progress/completion callback URL (falls back to CALLBACK_URL)")
    run.add_argument("--callback-secret", help="Bearer token for the callback (falls back to CALLBACK_SECRET)")
    run.add_argument("--vector-url", help="BYOK Upstash Vector REST URL")
    run.add_argument("--vector-token", help="BYOK Upstash Vector REST token")
    run.add_argument("--firecrawl-docker-url", help="Self-hosted Firecrawl base URL")
    run.add_argument("--firecrawl-docker-key", help="Self-hosted Firecrawl API key")
    run.add_argument("--chunk-id", type=int, help="1-based shard id of a sharded job")
    run.add_argument("--total-chunks", type=int, help="Shard count of a sharded job")

    status = sub.add_parser("status", help="Show job status from Redis")
    status.add_argument("job_id")

    plan = sub.add_parser("plan", help="Split a URL list into shards for parallel `run` processes")
    plan.add_argument("--urls", help="Comma-separated URLs")
    plan.add_argument("--urls-json", help="JSON array of URLs (falls back to URLS_JSON)")
    plan.add_argument("--shards", type=int, default=1, help="Shard count; 1 picks one from the URL count")

    sub.add_parser("info", help="Show vector index statistics")
    return parser


def parse_urls(args: argparse.Namespace, settings: Settings) -> list[str]:
    if args.urls:
        return [u.strip() for u in args.urls.split(",") if u.strip()]
    raw = args.urls_json or settings.urls_json
    if not raw:
        return []
    urls = json.loads(raw)
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise ValueError("URLs JSON must be an array of strings")
    return [u for u in urls if u]


def job_options_from_args(args: argparse.Namespace, settings: Settings, urls: list[str]) -> JobOptions:
    if (args.chunk_id is None) != (args.total_chunks is None):
        raise ValueError("--chunk-id and --total-chunks must be given together")
    byok = None
    if args.vector_url or args.vector_token:
        if not (args.vector_url and args.vector_token):
            raise ValueError("--vector-url and --vector-token must be given together")
        byok = VectorCredentials(url=args.vector_url, token=args.vector_token)
    return JobOptions(
        urls=urls,
        brand_slug=args.brand or settings.brand_slug,
        job_id=args.job_id or settings.job_id,
        concurrency=args.concurrency,
        batch_size=args.batch_size,
        chunk_size=args.chunk_size,
        chunk_overlap=args.chunk_overlap,
        callback_url=args.callback_url or settings.callback_url,
        callback_secret=args.callback_secret or settings.callback_secret,
        vector_credentials=byok,
        chunk_id=args.chunk_id,
        total_chunks=args.total_chunks,
    )


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    try:
        urls = parse_urls(args, settings)
    except ValueError as e:
        logger.error("Failed to parse URLs: %s", e)
        return 1
    if not urls:
        logger.error("No URLs provided. Use --urls or --urls-json")
        return 1

    try:
        options = job_options_from_args(args, settings, urls)
        fetchers = build_fetchers(
            args.engine or settings.scraper_engine,
            settings,
            firecrawl_docker_url=args.firecrawl_docker_url,
            firecrawl_docker_key=args.firecrawl_docker_key,
        )
    except ValueError as e:
        logger.error("%s", e)
        return 1

    logger.info(
        "Job %s: brand=%s engine=%s urls=%d concurrency=%d",
        options.job_id or "(none)",
        options.brand_slug,
        args.engine or settings.scraper_engine,
        len(urls),
        options.concurrency,
    )
    try:
        outcome = await run_job(
            options,
            vector_store=VectorStoreClient.from_settings(settings),
            fetchers=fetchers,
            status_store=JobStatusStore.from_settings(settings),
        )
    except CredentialsMissingError as e:
        logger.error("%s", e)
        return 1

    logger.info("Job finished: %s (%d indexed, %d failed)", outcome.status, outcome.indexed, outcome.failed)
    return outcome.exit_code


async def _status(args: argparse.Namespace, settings: Settings) -> int:
    store = JobStatusStore.from_settings(settings)
    if store is None:
        logger.error("Redis is not configured (UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN)")
        return 1
    record = await store.get_job_status(args.job_id)
    if record is None:
        logger.error("No status found for job %s", args.job_id)
        return 1
    print(json.dumps(asdict(record), indent=2))
    return 0


async def _info(settings: Settings) -> int:
    client = VectorStoreClient.from_settings(settings)
    try:
        info = await client.info()
    except (CredentialsMissingError, VectorStoreError) as e:
        logger.error("%s", e)
        return 1
    print(json.dumps(asdict(info), indent=2))
    return 0


def _plan(args: argparse.Namespace, settings: Settings) -> int:
    try:
        urls = parse_urls(args, settings)
    except ValueError as e:
        logger.error("Failed to parse URLs: %s", e)
        return 1
    if not urls:
        logger.error("No URLs provided. Use --urls or --urls-json")
        return 1

    total = plan_shard_count(len(urls), args.shards)
    # Each entry maps to one `run --chunk-id N --total-chunks TOTAL` process.
    shards = [{"chunk_id": i, "urls": shard_urls(urls, i, total)} for i in range(1, total + 1)]
    print(json.dumps({"total_chunks": total, "chunks": shards}, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    if args.command == "run":
        return asyncio.run(_run(args, settings))
    if args.command == "status":
        return asyncio.run(_status(args, settings))
    if args.command == "plan":
        return _plan(args, settings)
    return asyncio.run(_info(settings))


if __name__ == "__main__":
    sys.exit(main())
