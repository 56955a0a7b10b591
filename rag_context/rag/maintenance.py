"""
Index Maintenance
=================

Clears one namespace of a vector index. Clearing an index that does not
exist is a successful no-op.
"""

import logging
from dataclasses import dataclass

from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class ClearResult:
    success: bool
    message: str
    deleted: int = 0


def clear_namespace(index: VectorIndex, index_name: str, namespace: str = "") -> ClearResult:
    """
    Delete every record in one namespace, leaving other namespaces intact.

    Raises:
        VectorIndexError: listing or deleting failed
    """
    if not index.has_index(index_name):
        logger.info(
            f"Index {index_name} does not exist, nothing to clear",
            extra={"index_name": index_name, "namespace": namespace},
        )
        return ClearResult(success=True, message="Index does not exist, nothing to clear")

    deleted = index.delete_all(index_name, namespace)
    return ClearResult(success=True, message="Index cleared successfully", deleted=deleted)
