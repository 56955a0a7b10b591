"""
Query Preprocessing
===================

Strips question scaffolding from a user query so its embedding lands
closer to the document chunks that answer it.

    preprocess_query("Does Jaco have any health concerns?")  -> "health concerns"
    preprocess_query("What are Jaco's favorite activities?") -> "favorite activities"
    preprocess_query("Who is Jaco?")                         -> "Who is Jaco?"
"""

import logging
import re
from typing import FrozenSet, Iterable

logger = logging.getLogger(__name__)


QUESTION_WORDS: FrozenSet[str] = frozenset({
    "does", "do", "did",
    "is", "are", "was", "were", "been", "being",
    "has", "have", "had",
    "can", "could",
    "would", "should",
    "will", "shall",
    "what", "when", "where", "who", "whom", "whose", "why", "how",
    "which",
    "may", "might", "must",
    "a", "an", "the",
    "any", "some",
})

# Name of the subject every question is about; carries no retrieval signal
DEFAULT_SUBJECT_WORDS: FrozenSet[str] = frozenset({"jaco"})

DEFAULT_STOPWORDS: FrozenSet[str] = QUESTION_WORDS | DEFAULT_SUBJECT_WORDS

PUNCTUATION = re.compile(r"[?!.,\"';:]")
POSSESSIVE = re.compile(r"['’]s$")


def build_stopwords(subject_words: Iterable[str] = ()) -> FrozenSet[str]:
    """Question words plus deployment-specific subject names."""
    return QUESTION_WORDS | frozenset(w.strip().lower() for w in subject_words if w.strip())


def preprocess_query(query: str, stopwords: FrozenSet[str] = DEFAULT_STOPWORDS) -> str:
    """
    Normalize a query for embedding.

    Lowercases, drops stopwords (including their possessive form),
    removes punctuation and collapses whitespace. If nothing is left the
    original query is returned unchanged.
    """
    kept = []
    for token in query.lower().split():
        base = POSSESSIVE.sub("", token.strip("?!.,\"';:()"))
        if base in stopwords:
            continue
        token = PUNCTUATION.sub("", token)
        if token:
            kept.append(token)

    processed = " ".join(kept)
    if not processed:
        return query

    logger.debug(f'Query preprocessing: "{query}" -> "{processed}"')
    return processed
