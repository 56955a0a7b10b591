"""
RAG CLI
=======

Command-line interface for index management.

Usage:
    python -m rag_context.rag.cli seed https://example.com --max-pages 20
    python -m rag_context.rag.cli search "Does Jaco have any health concerns?"
    python -m rag_context.rag.cli clear
    python -m rag_context.rag.cli stats
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from ..config import get_settings
from ..logging_config import setup_logging_from_settings
from .errors import RAGError
from .ingestion import RAGIngestion, SeedRequest, seed
from .maintenance import clear_namespace
from .retriever import RAGRetriever, assemble_context
from .vector_index import PgVectorIndex

logger = logging.getLogger(__name__)


def seed_index(request: SeedRequest) -> bool:
    """Crawl a seed URL into the index."""
    try:
        pipeline = RAGIngestion.from_settings()
        sample = asyncio.run(seed(request, pipeline))

        stats = pipeline.stats
        logger.info(f"""
Seeding complete:
- Pages crawled: {stats['pages_crawled']}
- Chunks created: {stats['chunks_created']}
- Records upserted: {stats['records_upserted']}
- Embedding tokens: {stats['embedding_tokens']}
- Estimated cost: ${stats['embedding_cost_usd']:.4f}
- First page chunks: {len(sample)}
""")
        return True

    except (RAGError, ValueError) as e:
        logger.error(f"Seeding failed: {e}")
        return False


def search_index(
    query: str,
    index_name: str,
    namespace: str,
    max_characters: int,
    min_score: float,
) -> bool:
    """Run a retrieval and print the scored sources plus the assembled context."""
    try:
        retriever = RAGRetriever.from_settings()
        retriever.index_name = index_name
        results = asyncio.run(retriever.get_context(
            query,
            namespace=namespace,
            max_characters=max_characters,
            min_score=min_score,
            return_chunks_only=False,
        ))

        print(f"\n{'='*60}")
        print(f"Index: {index_name}")
        print(f"Query: {query}")
        print(f"Results: {len(results)}")
        print('='*60)

        for i, r in enumerate(results, 1):
            print(f"\n[{i}] Score: {r.score:.3f}  id={r.id}")
            print(f"    Source: {r.url}")
            print(f"    Chunk: {r.chunk[:200]}...")

        print(f"\n{'='*60}")
        print("ASSEMBLED CONTEXT:")
        print('='*60)
        print(assemble_context(results, max_characters) or "(no context above threshold)")

        return True

    except (RAGError, ValueError) as e:
        logger.error(f"Search failed: {e}")
        return False


def clear_index(index_name: str, namespace: str) -> bool:
    try:
        result = clear_namespace(PgVectorIndex(), index_name, namespace)
        logger.info(f"{result.message} ({result.deleted} records deleted)")
        return True
    except RAGError as e:
        logger.error(f"Clear failed: {e}")
        return False


def show_stats(index_name: str) -> bool:
    """Show record counts per namespace."""
    try:
        index = PgVectorIndex()
        description = index.describe_index(index_name)
        if description is None:
            print(f"Index {index_name} does not exist")
            return True

        stats = index.describe_index_stats(index_name)

        print(f"\n{'='*60}")
        print(f"INDEX {description.name}")
        print('='*60)
        print(f"  Dimension: {description.dimension} ({description.metric})")
        print(f"  Placement: {description.cloud}/{description.region}")
        print(f"  Status: {description.status}")
        print(f"\nTotal records: {stats['total_record_count']}")
        for namespace, count in sorted(stats["namespaces"].items()):
            print(f"  {namespace or '(default)'}: {count}")

        return True

    except RAGError as e:
        logger.error(f"Stats failed: {e}")
        return False


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="RAG context index CLI")
    parser.add_argument("--index", default=settings.vector_index.index_name, help="Index name")
    parser.add_argument("--namespace", default=settings.vector_index.namespace, help="Namespace")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Seed command
    seed_parser = subparsers.add_parser("seed", help="Crawl a URL into the index")
    seed_parser.add_argument("url", help="Seed URL (web page or Google Doc)")
    seed_parser.add_argument("--max-pages", type=int, default=settings.crawler.max_pages)
    seed_parser.add_argument("--max-depth", type=int, default=settings.crawler.max_depth)
    seed_parser.add_argument("--cloud", default=settings.vector_index.cloud)
    seed_parser.add_argument("--region", default=settings.vector_index.region)
    seed_parser.add_argument(
        "--splitting-method",
        choices=["recursive", "markdown"],
        default=settings.chunking.splitting_method,
    )
    seed_parser.add_argument("--chunk-size", type=int, default=settings.chunking.chunk_size)
    seed_parser.add_argument("--chunk-overlap", type=int, default=settings.chunking.chunk_overlap)

    # Search command
    search_parser = subparsers.add_parser("search", help="Test retrieval")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--max-characters", type=int, default=settings.retrieval.max_characters)
    search_parser.add_argument("--min-score", type=float, default=settings.retrieval.min_score)

    subparsers.add_parser("clear", help="Delete every record in the namespace")
    subparsers.add_parser("stats", help="Show index statistics")

    return parser


def main(argv: Optional[List[str]] = None):
    load_dotenv()
    setup_logging_from_settings()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "seed":
        success = seed_index(SeedRequest(
            seed_url=args.url,
            max_pages=args.max_pages,
            index_name=args.index,
            cloud=args.cloud,
            region=args.region,
            splitting_method=args.splitting_method,
            chunk_size=args.chunk_size,
            chunk_overlap=args.chunk_overlap,
            namespace=args.namespace,
            max_depth=args.max_depth,
        ))
    elif args.command == "search":
        success = search_index(
            args.query, args.index, args.namespace, args.max_characters, args.min_score,
        )
    elif args.command == "clear":
        success = clear_index(args.index, args.namespace)
    elif args.command == "stats":
        success = show_stats(args.index)
    else:
        parser.print_help()
        return

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
