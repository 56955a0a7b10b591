"""
RAG Vector Index
================

Similarity-search store behind a small capability interface:
list / describe / create indexes, upsert records, query by vector,
delete a namespace.

PgVectorIndex keeps every named index in PostgreSQL with pgvector:
- rag_vector_indexes: registry (dimension, metric, placement, status)
- rag_vectors: records keyed by (index_name, namespace, id)

Upserting an existing id replaces the record, which is what makes
re-ingestion idempotent.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from .errors import VectorIndexError
from .models import IndexRecord, RetrievalResult

logger = logging.getLogger(__name__)


class IndexStatus:
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass
class IndexDescription:
    """Registry entry for one named index."""
    name: str
    dimension: int
    metric: str = "cosine"
    cloud: Optional[str] = None
    region: Optional[str] = None
    status: str = IndexStatus.READY

    @property
    def ready(self) -> bool:
        return self.status == IndexStatus.READY


class VectorIndex(ABC):
    """Vector index capability consumed by ingestion and retrieval."""

    @abstractmethod
    def list_indexes(self) -> List[str]:
        """Names of all existing indexes."""

    @abstractmethod
    def describe_index(self, index_name: str) -> Optional[IndexDescription]:
        """Registry entry for an index, or None if it does not exist."""

    @abstractmethod
    def create_index(
        self,
        index_name: str,
        dimension: int,
        cloud: Optional[str] = None,
        region: Optional[str] = None,
        metric: str = "cosine",
    ) -> IndexDescription:
        """Create an index. Fails if it already exists."""

    @abstractmethod
    def upsert(self, index_name: str, records: List[IndexRecord], namespace: str = "") -> int:
        """Insert or replace records by id. Returns the number written."""

    @abstractmethod
    def query(
        self,
        index_name: str,
        vector: List[float],
        top_k: int = 10,
        namespace: str = "",
        include_metadata: bool = True,
    ) -> List[RetrievalResult]:
        """Top-k records by similarity, highest score first."""

    @abstractmethod
    def delete_all(self, index_name: str, namespace: str = "") -> int:
        """Delete every record in one namespace. Returns the number deleted."""

    @abstractmethod
    def describe_index_stats(self, index_name: str) -> Dict[str, Any]:
        """{"total_record_count": int, "namespaces": {namespace: count}}"""

    def has_index(self, index_name: str) -> bool:
        return index_name in self.list_indexes()


SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS vector;

CREATE TABLE IF NOT EXISTS rag_vector_indexes (
    name        TEXT PRIMARY KEY,
    dimension   INTEGER NOT NULL CHECK (dimension > 0),
    metric      TEXT NOT NULL DEFAULT 'cosine',
    cloud       TEXT,
    region      TEXT,
    status      TEXT NOT NULL DEFAULT 'initializing',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS rag_vectors (
    index_name  TEXT NOT NULL REFERENCES rag_vector_indexes(name) ON DELETE CASCADE,
    namespace   TEXT NOT NULL DEFAULT '',
    id          TEXT NOT NULL,
    embedding   vector NOT NULL,
    metadata    JSONB NOT NULL DEFAULT '{}'::jsonb,
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (index_name, namespace, id)
);
"""


class PgVectorIndex(VectorIndex):
    """
    VectorIndex on PostgreSQL + pgvector.

    Scores are cosine similarity (1 - cosine distance). Each named index
    gets its own HNSW expression index over the embeddings cast to its
    dimension.
    """

    def __init__(self, connection_factory: Optional[Callable] = None):
        if connection_factory is None:
            from ..db import get_connection
            connection_factory = get_connection
        self._connection_factory = connection_factory
        self._schema_ready = False

    @contextmanager
    def _transaction(self, action: str, index_name: Optional[str] = None, namespace: Optional[str] = None):
        """Yield a dict cursor; commit on success, translate DB errors."""
        try:
            with self._connection_factory() as conn:
                try:
                    with conn.cursor(cursor_factory=RealDictCursor) as cur:
                        if not self._schema_ready:
                            cur.execute(SCHEMA_SQL)
                        yield cur
                    conn.commit()
                    self._schema_ready = True
                except BaseException:
                    conn.rollback()
                    raise
        except (psycopg2.Error, ConnectionError) as e:
            raise VectorIndexError(f"Failed to {action}: {e}", index_name, namespace) from e

    def list_indexes(self) -> List[str]:
        with self._transaction("list indexes") as cur:
            cur.execute("SELECT name FROM rag_vector_indexes ORDER BY name")
            return [row["name"] for row in cur.fetchall()]

    def describe_index(self, index_name: str) -> Optional[IndexDescription]:
        with self._transaction("describe index", index_name) as cur:
            cur.execute("""
                SELECT name, dimension, metric, cloud, region, status
                FROM rag_vector_indexes
                WHERE name = %s
            """, (index_name,))
            row = cur.fetchone()

        if not row:
            return None
        return IndexDescription(**row)

    def create_index(
        self,
        index_name: str,
        dimension: int,
        cloud: Optional[str] = None,
        region: Optional[str] = None,
        metric: str = "cosine",
    ) -> IndexDescription:
        if metric != "cosine":
            raise VectorIndexError(f"Unsupported metric '{metric}'", index_name)

        ann_index = self._ann_index_name(index_name)

        # Registration, HNSW build and the ready flip commit together, so a
        # failed build leaves no registry row behind. A concurrent creator
        # blocks on the insert and then falls through to the no-op branches.
        with self._transaction("create index", index_name) as cur:
            cur.execute("""
                INSERT INTO rag_vector_indexes (name, dimension, metric, cloud, region, status)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (name) DO NOTHING
            """, (index_name, dimension, metric, cloud, region, IndexStatus.INITIALIZING))

            cur.execute(
                "SELECT dimension FROM rag_vector_indexes WHERE name = %s",
                (index_name,),
            )
            # the registered dimension wins when another creator got there first
            registered = int(cur.fetchone()["dimension"])

            cur.execute(f"""
                CREATE INDEX IF NOT EXISTS {ann_index}
                ON rag_vectors
                USING hnsw ((embedding::vector({registered})) vector_cosine_ops)
                WHERE index_name = %s
            """, (index_name,))
            cur.execute("""
                UPDATE rag_vector_indexes SET status = %s
                WHERE name = %s
                RETURNING name, dimension, metric, cloud, region, status
            """, (IndexStatus.READY, index_name))
            row = cur.fetchone()

        logger.info(
            f"Created index {index_name} (dimension={registered}, cloud={cloud}, region={region})",
            extra={"index_name": index_name},
        )
        return IndexDescription(**row)

    def upsert(self, index_name: str, records: List[IndexRecord], namespace: str = "") -> int:
        if not records:
            return 0

        description = self._require_index(index_name, namespace)
        for record in records:
            if len(record.values) != description.dimension:
                raise VectorIndexError(
                    f"Record {record.id} has dimension {len(record.values)}, "
                    f"index expects {description.dimension}",
                    index_name, namespace,
                )

        # One statement cannot touch the same row twice; last duplicate wins
        unique = {record.id: record for record in records}
        rows = [
            (index_name, namespace, r.id, r.values, Json(r.metadata))
            for r in unique.values()
        ]

        with self._transaction("upsert records", index_name, namespace) as cur:
            execute_values(cur, """
                INSERT INTO rag_vectors (index_name, namespace, id, embedding, metadata)
                VALUES %s
                ON CONFLICT (index_name, namespace, id) DO UPDATE SET
                    embedding = EXCLUDED.embedding,
                    metadata = EXCLUDED.metadata,
                    updated_at = NOW()
            """, rows, template="(%s, %s, %s, %s::vector, %s)")

        logger.debug(f"Upserted {len(rows)} records into {index_name}")
        return len(rows)

    def query(
        self,
        index_name: str,
        vector: List[float],
        top_k: int = 10,
        namespace: str = "",
        include_metadata: bool = True,
    ) -> List[RetrievalResult]:
        description = self._require_index(index_name, namespace)
        if len(vector) != description.dimension:
            raise VectorIndexError(
                f"Query vector has dimension {len(vector)}, index expects {description.dimension}",
                index_name, namespace,
            )

        dim = int(description.dimension)
        metadata_column = "metadata" if include_metadata else "'{}'::jsonb AS metadata"
        with self._transaction("query", index_name, namespace) as cur:
            cur.execute(f"""
                SELECT id,
                       1 - (embedding::vector({dim}) <=> %s::vector({dim})) AS score,
                       {metadata_column}
                FROM rag_vectors
                WHERE index_name = %s AND namespace = %s
                ORDER BY embedding::vector({dim}) <=> %s::vector({dim})
                LIMIT %s
            """, (vector, index_name, namespace, vector, top_k))
            rows = cur.fetchall()

        return [
            RetrievalResult(id=row["id"], score=float(row["score"]), metadata=row["metadata"] or {})
            for row in rows
        ]

    def delete_all(self, index_name: str, namespace: str = "") -> int:
        with self._transaction("delete namespace", index_name, namespace) as cur:
            cur.execute(
                "DELETE FROM rag_vectors WHERE index_name = %s AND namespace = %s",
                (index_name, namespace),
            )
            deleted = cur.rowcount

        logger.info(
            f"Deleted {deleted} records from {index_name}/{namespace or '(default)'}",
            extra={"index_name": index_name, "namespace": namespace},
        )
        return deleted

    def describe_index_stats(self, index_name: str) -> Dict[str, Any]:
        self._require_index(index_name)
        with self._transaction("describe index stats", index_name) as cur:
            cur.execute("""
                SELECT namespace, COUNT(*) AS count
                FROM rag_vectors
                WHERE index_name = %s
                GROUP BY namespace
            """, (index_name,))
            namespaces = {row["namespace"]: int(row["count"]) for row in cur.fetchall()}

        return {
            "total_record_count": sum(namespaces.values()),
            "namespaces": namespaces,
        }

    def _require_index(self, index_name: str, namespace: Optional[str] = None) -> IndexDescription:
        description = self.describe_index(index_name)
        if description is None:
            raise VectorIndexError("Index does not exist", index_name, namespace)
        return description

    @staticmethod
    def _ann_index_name(index_name: str) -> str:
        return f"rag_vectors_hnsw_{hashlib.md5(index_name.encode('utf-8')).hexdigest()[:12]}"
