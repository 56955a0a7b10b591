"""
rag-context Database Connection
===============================

psycopg2 connection pooling for the pgvector-backed vector index.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict

logger = logging.getLogger(__name__)

_pool = None


def get_pool():
    """Get or create connection pool (lazy singleton)."""
    global _pool
    if _pool is not None:
        return _pool

    try:
        from psycopg2 import pool as pg_pool
        from .config import get_settings

        db_config = get_settings().database
        _pool = pg_pool.ThreadedConnectionPool(
            db_config.pool_min_size,
            db_config.pool_max_size,
            **db_config.connection_dict,
        )
        logger.info(f"DB pool created: {db_config.host}:{db_config.port}/{db_config.name}")
        return _pool
    except Exception as e:
        logger.warning(f"Failed to create DB pool: {e}")
        return None


def close_pool():
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("DB pool closed")


@contextmanager
def get_connection():
    """Get a connection from the pool (context manager)."""
    pool = get_pool()
    if pool is None:
        raise ConnectionError("Database pool not available")
    conn = pool.getconn()
    try:
        yield conn
    finally:
        pool.putconn(conn)


def check_health() -> Dict[str, Any]:
    """
    Check database health. Returns status dict.
    Non-blocking: returns 'disconnected' if DB is not reachable.
    """
    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT version(), "
                "(SELECT extversion FROM pg_extension WHERE extname = 'vector')"
            )
            row = cur.fetchone()
            cur.close()
            version = row[0].split(",")[0] if row[0] else "unknown"
            return {
                "status": "connected",
                "version": version,
                "pgvector": row[1],
            }
    except Exception as e:
        logger.warning(f"DB health check failed: {e}")
        return {
            "status": "disconnected",
            "error": str(e),
        }
