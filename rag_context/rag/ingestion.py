"""
RAG Ingestion Pipeline
======================

Seeds the vector index from a crawl.

Flow (strictly ordered):
1. Crawl the seed URL
2. Split every page into chunks (source URL + content hash)
3. Ensure the target index exists (create + wait until ready)
4. Embed all chunks concurrently
5. Upsert records in sequential fixed-size batches

Any failure aborts the run. Batches already upserted stay in the index;
re-running the seed overwrites them by id.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from .chunker import RAGChunker
from .crawler import Crawler
from .embedder import RAGEmbedder
from .errors import VectorIndexError
from .models import EMBEDDING_DIMENSIONS, Chunk, IndexRecord, SplitStrategy, split_strategy
from .vector_index import IndexDescription, VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class SeedRequest:
    """Operator input for one ingestion run."""
    seed_url: str
    max_pages: int
    index_name: str
    cloud: str
    region: str
    splitting_method: str = "markdown"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    namespace: str = ""
    max_depth: Optional[int] = None

    @property
    def strategy(self) -> SplitStrategy:
        return split_strategy(self.splitting_method, self.chunk_size, self.chunk_overlap)


class RAGIngestion:
    """
    Ingestion pipeline for the vector index.

    Handles:
    - Crawling
    - Chunking
    - Index provisioning
    - Embedding generation
    - Batched, idempotent upsert
    """

    def __init__(
        self,
        crawler: Optional[Crawler] = None,
        chunker: Optional[RAGChunker] = None,
        embedder: Optional[RAGEmbedder] = None,
        index: Optional[VectorIndex] = None,
        upsert_batch_size: int = 10,
        ready_timeout: float = 60.0,
        poll_interval: float = 1.0,
    ):
        if upsert_batch_size <= 0:
            raise ValueError("upsert_batch_size must be positive")

        self.crawler = crawler or Crawler()
        self.chunker = chunker or RAGChunker()
        self.embedder = embedder or RAGEmbedder()
        if index is None:
            from .vector_index import PgVectorIndex
            index = PgVectorIndex()
        self.index = index
        self.upsert_batch_size = upsert_batch_size
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval

        self._pages_crawled = 0
        self._chunks_created = 0
        self._records_upserted = 0

    @classmethod
    def from_settings(cls, settings=None) -> "RAGIngestion":
        from ..config import get_settings

        settings = settings or get_settings()
        return cls(
            crawler=Crawler.from_settings(settings),
            embedder=RAGEmbedder.from_settings(settings),
            upsert_batch_size=settings.chunking.upsert_batch_size,
            ready_timeout=settings.vector_index.ready_timeout,
        )

    async def ingest(
        self,
        seed_url: str,
        max_pages: int,
        index_name: str,
        cloud: str,
        region: str,
        strategy: SplitStrategy,
        namespace: str = "",
        max_depth: Optional[int] = None,
    ) -> List[Chunk]:
        """
        Crawl, chunk, embed and upsert one seed.

        Returns:
            The first document's chunks, as a sample of what was indexed

        Raises:
            CrawlError, EmbeddingError, VectorIndexError: the run is aborted
        """
        started = time.monotonic()
        log_extra = {"index_name": index_name, "namespace": namespace, "url": seed_url}
        logger.info(
            f"Starting seed of {seed_url} into {index_name} "
            f"(cloud={cloud}, region={region}, strategy={strategy.method.value})",
            extra=log_extra,
        )

        try:
            documents = await self.crawler.crawl(seed_url, max_depth=max_depth, max_pages=max_pages)
            self._pages_crawled += len(documents)
            logger.info(f"Crawled {len(documents)} page(s)", extra={**log_extra, "stage": "crawl"})

            per_document = [self.chunker.split_document(doc, strategy) for doc in documents]
            chunks = [chunk for doc_chunks in per_document for chunk in doc_chunks]
            self._chunks_created += len(chunks)
            logger.info(f"Split into {len(chunks)} chunks", extra={**log_extra, "stage": "split"})

            await self.ensure_index(index_name, cloud, region)

            records = await self.embed_chunks(chunks)
            logger.info(f"Generated {len(records)} embeddings", extra={**log_extra, "stage": "embed"})

            upserted = await self.chunked_upsert(index_name, records, namespace)
            self._records_upserted += upserted
        except Exception:
            logger.exception(f"Seeding {seed_url} failed", extra=log_extra)
            raise

        logger.info(
            f"Seeded {upserted} records into {index_name}",
            extra={**log_extra, "stage": "upsert", "duration": round(time.monotonic() - started, 2)},
        )
        return per_document[0] if per_document else []

    async def ensure_index(self, index_name: str, cloud: str, region: str) -> IndexDescription:
        """Create the index if absent, then wait until it reports ready."""
        existing = await asyncio.to_thread(self.index.list_indexes)
        logger.info(f"Available indexes: {', '.join(existing) or 'none'}")

        if index_name not in existing:
            logger.info(f"Creating new index {index_name}", extra={"index_name": index_name})
            await asyncio.to_thread(
                self.index.create_index, index_name, EMBEDDING_DIMENSIONS, cloud, region,
            )
        else:
            logger.info(f"Index {index_name} already exists")

        return await self._wait_until_ready(index_name)

    async def _wait_until_ready(self, index_name: str) -> IndexDescription:
        deadline = time.monotonic() + self.ready_timeout
        while True:
            description = await asyncio.to_thread(self.index.describe_index, index_name)
            if description is not None and description.ready:
                if description.dimension != EMBEDDING_DIMENSIONS:
                    raise VectorIndexError(
                        f"Index dimension {description.dimension} does not match "
                        f"embedding dimension {EMBEDDING_DIMENSIONS}",
                        index_name,
                    )
                return description
            if time.monotonic() >= deadline:
                raise VectorIndexError(
                    f"Index not ready after {self.ready_timeout}s", index_name,
                )
            await asyncio.sleep(self.poll_interval)

    async def embed_chunks(self, chunks: List[Chunk]) -> List[IndexRecord]:
        """
        Embed every chunk; identical chunk texts are embedded once since
        they share an id.
        """
        unique: Dict[str, Chunk] = {}
        for chunk in chunks:
            unique.setdefault(chunk.content_hash, chunk)
        if len(unique) < len(chunks):
            logger.debug(f"Skipping {len(chunks) - len(unique)} duplicate chunks")

        ordered = list(unique.values())
        vectors = await self.embedder.embed_many([c.text for c in ordered])
        return [IndexRecord.from_chunk(chunk, vector) for chunk, vector in zip(ordered, vectors)]

    async def chunked_upsert(
        self,
        index_name: str,
        records: List[IndexRecord],
        namespace: str = "",
        batch_size: Optional[int] = None,
    ) -> int:
        """Upsert in sequential batches; each batch completes before the next starts."""
        batch_size = batch_size or self.upsert_batch_size
        total = 0
        for i in range(0, len(records), batch_size):
            batch = records[i:i + batch_size]
            total += await asyncio.to_thread(self.index.upsert, index_name, batch, namespace)
            logger.debug(f"Upserted batch {i // batch_size + 1} ({len(batch)} records)")
        return total

    @property
    def stats(self) -> Dict[str, float]:
        """Get ingestion statistics."""
        return {
            "pages_crawled": self._pages_crawled,
            "chunks_created": self._chunks_created,
            "records_upserted": self._records_upserted,
            "embedding_tokens": self.embedder.total_tokens,
            "embedding_cost_usd": self.embedder.estimated_cost,
        }


async def seed(request: SeedRequest, pipeline: Optional[RAGIngestion] = None) -> List[Chunk]:
    """Run one SeedRequest through a (default-configured) pipeline."""
    pipeline = pipeline or RAGIngestion.from_settings()
    return await pipeline.ingest(
        seed_url=request.seed_url,
        max_pages=request.max_pages,
        index_name=request.index_name,
        cloud=request.cloud,
        region=request.region,
        strategy=request.strategy,
        namespace=request.namespace,
        max_depth=request.max_depth,
    )
