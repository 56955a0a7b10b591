"""
Shared test doubles: an in-memory vector index, a deterministic
embedder and a canned page fetcher.
"""

import hashlib
import math
import random
from typing import Dict, List, Optional

import pytest

from rag_context.rag.errors import EmbeddingError, FetchError
from rag_context.rag.models import EMBEDDING_DIMENSIONS, IndexRecord, RetrievalResult
from rag_context.rag.vector_index import IndexDescription, IndexStatus, VectorIndex


def fake_vector(text: str, dimension: int = EMBEDDING_DIMENSIONS) -> List[float]:
    """Deterministic pseudo-embedding seeded by the text."""
    rnd = random.Random(int(hashlib.md5(text.encode("utf-8")).hexdigest(), 16))
    return [rnd.uniform(-1.0, 1.0) for _ in range(dimension)]


def cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeVectorIndex(VectorIndex):
    """In-memory VectorIndex with call recording."""

    def __init__(self):
        self.indexes: Dict[str, IndexDescription] = {}
        self.records: Dict[str, Dict[str, Dict[str, IndexRecord]]] = {}
        self.upsert_calls: List[int] = []
        self.query_calls: List[dict] = []
        self.created: List[str] = []

        # Preset query output (bypasses similarity search when set)
        self.query_results: Optional[List[RetrievalResult]] = None

        # describe_index reports "initializing" this many times after creation
        self.initializing_polls = 0

    def list_indexes(self) -> List[str]:
        return sorted(self.indexes)

    def describe_index(self, index_name: str) -> Optional[IndexDescription]:
        description = self.indexes.get(index_name)
        if description is None:
            return None
        if self.initializing_polls > 0:
            self.initializing_polls -= 1
            return IndexDescription(
                description.name, description.dimension, status=IndexStatus.INITIALIZING,
            )
        return description

    def create_index(self, index_name, dimension, cloud=None, region=None, metric="cosine"):
        description = IndexDescription(index_name, dimension, metric, cloud, region)
        self.indexes[index_name] = description
        self.records.setdefault(index_name, {})
        self.created.append(index_name)
        return description

    def upsert(self, index_name, records, namespace=""):
        namespaces = self.records.setdefault(index_name, {})
        target = namespaces.setdefault(namespace, {})
        for record in records:
            target[record.id] = record
        self.upsert_calls.append(len(records))
        return len(records)

    def query(self, index_name, vector, top_k=10, namespace="", include_metadata=True):
        self.query_calls.append({
            "index_name": index_name,
            "top_k": top_k,
            "namespace": namespace,
            "include_metadata": include_metadata,
        })
        if self.query_results is not None:
            return list(self.query_results)[:top_k]

        candidates = self.records.get(index_name, {}).get(namespace, {}).values()
        scored = [
            RetrievalResult(id=r.id, score=cosine(vector, r.values), metadata=dict(r.metadata))
            for r in candidates
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:top_k]

    def delete_all(self, index_name, namespace=""):
        removed = self.records.get(index_name, {}).pop(namespace, {})
        return len(removed)

    def describe_index_stats(self, index_name):
        namespaces = {ns: len(recs) for ns, recs in self.records.get(index_name, {}).items()}
        return {"total_record_count": sum(namespaces.values()), "namespaces": namespaces}

    def record_count(self, index_name: str, namespace: str = "") -> int:
        return len(self.records.get(index_name, {}).get(namespace, {}))


class FakeEmbedder:
    """Deterministic embedder that records every text it is asked to embed."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.total_tokens = 0
        self.estimated_cost = 0.0

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingError("Embedding service error: boom")
        self.total_tokens += len(text.split())
        return fake_vector(text)

    async def embed_many(self, texts: List[str]) -> List[List[float]]:
        return [await self.embed(t) for t in texts]


class FakeFetcher:
    """PageFetcher stand-in serving canned HTML; unknown URLs are 404s."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = pages
        self.calls: List[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise FetchError(url, "HTTP 404", status_code=404)
        return self.pages[url]


def page(title: str, body: str, links=()) -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return f"<html><body><h1>{title}</h1><p>{body}</p>{anchors}</body></html>"


def make_site(n_pages: int, root: str = "https://example.com") -> Dict[str, str]:
    """Root page linking to n_pages - 1 children, each linking back to the root."""
    children = [f"{root}/page{i}" for i in range(1, n_pages)]
    pages = {f"{root}/": page("Home", "Welcome to the site.", [f"/page{i}" for i in range(1, n_pages)])}
    for i, url in enumerate(children, 1):
        pages[url] = page(f"Page {i}", f"Content of page number {i}.", ["/"])
    return pages


@pytest.fixture
def fake_index():
    return FakeVectorIndex()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()
