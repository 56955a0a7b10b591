"""
rag-context
===========

Retrieval-augmented context pipeline: crawl and index documents into a
vector index, then assemble bounded context blocks for a chat model.
"""

__version__ = "0.1.0"
