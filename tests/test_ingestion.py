"""
Tests for the ingestion pipeline.

Crawl, embedding and index are all in-memory doubles.
"""

import asyncio

import pytest

from rag_context.rag.chunker import RAGChunker, content_hash
from rag_context.rag.crawler import Crawler
from rag_context.rag.errors import CrawlError, EmbeddingError, VectorIndexError
from rag_context.rag.ingestion import RAGIngestion, SeedRequest, seed
from rag_context.rag.models import MarkdownSplit, RecursiveSplit

from conftest import FakeEmbedder, FakeFetcher, make_site, page


ROOT = "https://example.com/"


def make_pipeline(fake_index, embedder=None, pages=None, **kwargs):
    fetcher = FakeFetcher(pages if pages is not None else make_site(4))
    return RAGIngestion(
        crawler=Crawler(fetcher=fetcher),
        chunker=RAGChunker(),
        embedder=embedder or FakeEmbedder(),
        index=fake_index,
        poll_interval=0,
        **kwargs,
    )


def ingest(pipeline, strategy=None, index_name="pets", namespace="", max_pages=10):
    return asyncio.run(pipeline.ingest(
        seed_url=ROOT,
        max_pages=max_pages,
        index_name=index_name,
        cloud="aws",
        region="us-east-1",
        strategy=strategy or MarkdownSplit(),
        namespace=namespace,
    ))


class TestIngest:
    """Tests for the end-to-end flow."""

    def test_creates_index_and_upserts(self, fake_index):
        pipeline = make_pipeline(fake_index)
        sample = ingest(pipeline)

        assert fake_index.created == ["pets"]
        assert fake_index.indexes["pets"].dimension == 1536
        assert fake_index.indexes["pets"].cloud == "aws"
        assert fake_index.record_count("pets") == 4
        assert sample and sample[0].source_url == ROOT

    def test_records_keyed_by_content_hash(self, fake_index):
        ingest(make_pipeline(fake_index))

        for record_id, record in fake_index.records["pets"][""].items():
            assert record_id == content_hash(record.metadata["chunk"])
            assert record.metadata["hash"] == record_id
            assert record.metadata["url"].startswith("https://example.com/")

    def test_reingestion_is_idempotent(self, fake_index):
        """Re-ingesting unchanged content keeps a single record per chunk."""
        ingest(make_pipeline(fake_index))
        before = fake_index.record_count("pets")
        ids_before = set(fake_index.records["pets"][""])

        ingest(make_pipeline(fake_index))

        assert fake_index.record_count("pets") == before
        assert set(fake_index.records["pets"][""]) == ids_before
        assert fake_index.created == ["pets"]

    def test_namespace_isolated(self, fake_index):
        ingest(make_pipeline(fake_index), namespace="ns1")

        assert fake_index.record_count("pets", "ns1") == 4
        assert fake_index.record_count("pets", "") == 0

    def test_sequential_batches(self, fake_index):
        pipeline = make_pipeline(fake_index, pages=make_site(5), upsert_batch_size=2)
        ingest(pipeline)

        assert fake_index.upsert_calls == [2, 2, 1]

    def test_duplicate_chunks_embedded_once(self, fake_index):
        html = '<html><body><p>Identical body.</p><a href="/copy"></a></body></html>'
        pages = {ROOT: html, "https://example.com/copy": html}
        embedder = FakeEmbedder()
        ingest(make_pipeline(fake_index, embedder=embedder, pages=pages))

        assert len(embedder.calls) == 1
        assert fake_index.record_count("pets") == 1

    def test_recursive_strategy(self, fake_index):
        pages = {ROOT: page("Long", "Jaco enjoys long walks in the park. " * 40)}
        ingest(make_pipeline(fake_index, pages=pages), strategy=RecursiveSplit(200, 20))

        records = fake_index.records["pets"][""].values()
        assert len(records) > 1
        assert all(len(r.metadata["chunk"]) <= 200 for r in records)

    def test_stats(self, fake_index):
        pipeline = make_pipeline(fake_index)
        ingest(pipeline)

        stats = pipeline.stats
        assert stats["pages_crawled"] == 4
        assert stats["chunks_created"] == 4
        assert stats["records_upserted"] == 4

    def test_invalid_batch_size(self, fake_index):
        with pytest.raises(ValueError):
            make_pipeline(fake_index, upsert_batch_size=0)


class TestIngestFailures:
    """Failures abort the whole run."""

    def test_crawl_error_propagates(self, fake_index):
        with pytest.raises(CrawlError):
            ingest(make_pipeline(fake_index, pages={}))

        assert fake_index.created == []

    def test_embedding_error_aborts_before_upsert(self, fake_index):
        embedder = FakeEmbedder(fail_on="page number 2")

        with pytest.raises(EmbeddingError):
            ingest(make_pipeline(fake_index, embedder=embedder))

        assert fake_index.upsert_calls == []


class TestEnsureIndex:
    """Tests for index provisioning and readiness."""

    def test_existing_index_reused(self, fake_index):
        fake_index.create_index("pets", 1536)
        fake_index.created.clear()

        ingest(make_pipeline(fake_index))

        assert fake_index.created == []

    def test_waits_until_ready(self, fake_index):
        fake_index.initializing_polls = 3
        pipeline = make_pipeline(fake_index)

        description = asyncio.run(pipeline.ensure_index("pets", "aws", "us-east-1"))

        assert description.ready
        assert fake_index.initializing_polls == 0

    def test_ready_timeout(self, fake_index):
        fake_index.initializing_polls = 10_000
        pipeline = make_pipeline(fake_index, ready_timeout=0)

        with pytest.raises(VectorIndexError, match="not ready"):
            asyncio.run(pipeline.ensure_index("pets", "aws", "us-east-1"))

    def test_dimension_mismatch(self, fake_index):
        fake_index.create_index("pets", 768)

        with pytest.raises(VectorIndexError, match="dimension 768"):
            asyncio.run(make_pipeline(fake_index).ensure_index("pets", "aws", "us-east-1"))


class TestSeedRequest:
    """Tests for the operator entry point."""

    def test_strategy_from_request(self):
        request = SeedRequest(
            seed_url=ROOT, max_pages=5, index_name="pets", cloud="aws", region="us-east-1",
            splitting_method="recursive", chunk_size=300, chunk_overlap=30,
        )
        assert request.strategy == RecursiveSplit(300, 30)

    def test_markdown_request_ignores_sizes(self):
        request = SeedRequest(
            seed_url=ROOT, max_pages=5, index_name="pets", cloud="aws", region="us-east-1",
            splitting_method="markdown", chunk_size=10, chunk_overlap=1,
        )
        assert isinstance(request.strategy, MarkdownSplit)

    def test_seed_runs_pipeline(self, fake_index):
        request = SeedRequest(
            seed_url=ROOT, max_pages=2, index_name="pets", cloud="gcp", region="us-central1",
        )
        chunks = asyncio.run(seed(request, make_pipeline(fake_index)))

        assert chunks[0].source_url == ROOT
        assert fake_index.record_count("pets") == 2
        assert fake_index.indexes["pets"].region == "us-central1"
