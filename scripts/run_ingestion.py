#!/usr/bin/env python3
"""
rag-context Seed Ingestion Script
=================================

Crawl a seed URL into the vector index (cron-friendly wrapper around
`python -m rag_context.rag.cli seed`).

Usage:
    # Seed with configured defaults
    python scripts/run_ingestion.py https://example.com/docs

    # Quick test with a small crawl
    python scripts/run_ingestion.py https://example.com/docs --max-pages 5

    # Google Doc (requires GOOGLE_SERVICE_ACCOUNT_KEY)
    python scripts/run_ingestion.py https://docs.google.com/document/d/<id>/edit

    # View index statistics
    python scripts/run_ingestion.py --mode stats

Environment:
    Set OPENAI_API_KEY and DATABASE_PASSWORD in .env or environment.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

from rag_context.config import get_settings
from rag_context.logging_config import setup_logging_from_settings
from rag_context.rag import (
    CrawlError,
    EmbeddingError,
    PgVectorIndex,
    RAGIngestion,
    SeedRequest,
    VectorIndexError,
    seed,
)

logger = logging.getLogger("run_ingestion")


def run_stats(index_name: str) -> int:
    """Display record counts for the index."""
    print("\n" + "=" * 60)
    print(f"INDEX STATISTICS - {index_name}")
    print("=" * 60 + "\n")

    try:
        stats = PgVectorIndex().describe_index_stats(index_name)
    except VectorIndexError as e:
        print(f"[FAIL] Stats retrieval failed: {e}")
        return 1

    print(f"  Total records:  {stats['total_record_count']:,}")
    for namespace, count in sorted(stats["namespaces"].items()):
        print(f"  {namespace or '(default)':<15} {count:,}")
    return 0


def run_seed(request: SeedRequest, verbose: bool = False) -> int:
    """Run one seed ingestion."""
    print("\n" + "=" * 60)
    print(f"SEED INGESTION - {request.seed_url}")
    print("=" * 60 + "\n")

    start_time = datetime.now(timezone.utc)
    print(f"Started at: {start_time.isoformat()}")

    try:
        pipeline = RAGIngestion.from_settings()
        sample = asyncio.run(seed(request, pipeline))
    except CrawlError as e:
        print(f"\n[ERROR] Crawl error: {e}")
        return 1
    except EmbeddingError as e:
        print(f"\n[ERROR] Embedding error: {e}")
        return 1
    except VectorIndexError as e:
        print(f"\n[ERROR] Index error: {e}")
        return 1
    except Exception as e:
        print(f"\n[ERROR] Unexpected error: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    stats = pipeline.stats
    duration = (datetime.now(timezone.utc) - start_time).total_seconds()

    print("\n" + "-" * 40)
    print("RESULTS:")
    print("-" * 40)
    print(f"  Index:             {request.index_name}/{request.namespace or '(default)'}")
    print(f"  Pages crawled:     {stats['pages_crawled']:,}")
    print(f"  Chunks created:    {stats['chunks_created']:,}")
    print(f"  Records upserted:  {stats['records_upserted']:,}")
    print(f"  First page chunks: {len(sample):,}")
    print()
    print(f"  Embedding tokens:  {stats['embedding_tokens']:,}")
    print(f"  Estimated cost:    ${stats['embedding_cost_usd']:.4f}")
    print()
    print(f"  Duration:          {duration:.1f} seconds")
    return 0


def main():
    """Main entry point."""
    load_dotenv()
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="rag-context seed ingestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("url", nargs="?", help="Seed URL")
    parser.add_argument("--mode", choices=["seed", "stats"], default="seed")
    parser.add_argument("--index", default=settings.vector_index.index_name)
    parser.add_argument("--namespace", default=settings.vector_index.namespace)
    parser.add_argument("--max-pages", type=int, default=settings.crawler.max_pages)
    parser.add_argument("--max-depth", type=int, default=settings.crawler.max_depth)
    parser.add_argument(
        "--splitting-method",
        choices=["recursive", "markdown"],
        default=settings.chunking.splitting_method,
    )
    parser.add_argument("--chunk-size", type=int, default=settings.chunking.chunk_size)
    parser.add_argument("--chunk-overlap", type=int, default=settings.chunking.chunk_overlap)
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--log-file", help="Log file path")
    args = parser.parse_args()

    setup_logging_from_settings(
        settings,
        level="DEBUG" if args.verbose else None,
        log_file=args.log_file,
    )

    if args.mode == "stats":
        return run_stats(args.index)

    if not args.url:
        parser.error("a seed URL is required in seed mode")

    return run_seed(
        SeedRequest(
            seed_url=args.url,
            max_pages=args.max_pages,
            index_name=args.index,
            cloud=settings.vector_index.cloud,
            region=settings.vector_index.region,
            splitting_method=args.splitting_method,
            chunk_size=args.chunk_size,
            chunk_overlap=args.chunk_overlap,
            namespace=args.namespace,
            max_depth=args.max_depth,
        ),
        verbose=args.verbose,
    )


if __name__ == "__main__":
    sys.exit(main())
