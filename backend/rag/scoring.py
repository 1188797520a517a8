"""
Hybrid scoring: cosine similarity plus a capped keyword boost.

combined = min(1.0, cosine(query, record) + keyword_boost(query, chunk))

The keyword boost nudges exact-term matches upward without letting keyword
stuffing dominate semantic relevance.
"""

import math
import re
from typing import Sequence

import numpy as np

SIMILARITY_THRESHOLD = 0.3
MAX_COMBINED_SCORE = 1.0

MIN_KEYWORD_LENGTH = 3
KEYWORD_MATCH_WEIGHT = 0.15
EARLY_MATCH_BONUS = 0.1
EARLY_MATCH_WINDOW = 100  # characters
MAX_KEYWORD_BOOST = 0.5

# Articles, auxiliaries, pronouns and common query verbs
STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "can", "to",
    "of", "in", "for", "on", "with", "at", "by", "from", "as",
    "into", "about", "what", "which", "who", "whom", "this",
    "that", "these", "those", "am", "my", "me", "i", "you",
    "your", "tell", "show", "find", "get", "give",
})

_NON_ALPHANUMERIC = re.compile(r"[\W_]+")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    dot(a, b) / (|a| * |b|).

    Returns 0.0 for empty vectors, vectors of different length, or a zero
    norm on either side.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    denominator = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denominator == 0.0 or not math.isfinite(denominator):
        return 0.0
    similarity = float(np.dot(va, vb)) / denominator
    return similarity if math.isfinite(similarity) else 0.0


def extract_keywords(query: str, stop_words: frozenset[str] = STOP_WORDS) -> list[str]:
    """Lowercased alphanumeric tokens of length >= 3 that aren't stop words, in query order."""
    return [
        token for token in _NON_ALPHANUMERIC.split(query.lower())
        if len(token) >= MIN_KEYWORD_LENGTH and token not in stop_words
    ]


def keyword_boost(keywords: Sequence[str], text: str) -> float:
    """
    Lexical boost for a chunk.

    Each keyword found anywhere in the chunk counts as a match, worth
    0.15 / len(keywords). A match inside the first 100 characters (where the
    title usually sits) adds another 0.1. The total is capped at 0.5.
    """
    if not keywords:
        return 0.0

    lower_text = text.lower()
    head = lower_text[:EARLY_MATCH_WINDOW]
    match_count = 0
    early_bonus = 0.0

    for keyword in keywords:
        if keyword in lower_text:
            match_count += 1
            if keyword in head:
                early_bonus += EARLY_MATCH_BONUS

    base_boost = match_count * KEYWORD_MATCH_WEIGHT / len(keywords)
    return min(MAX_KEYWORD_BOOST, base_boost + early_bonus)


def combined_score(semantic_score: float, boost: float) -> float:
    return min(MAX_COMBINED_SCORE, semantic_score + boost)


def meets_threshold(score: float, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Inclusive lower bound: a score equal to the threshold passes."""
    return score >= threshold
