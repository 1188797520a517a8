"""
Search service - hybrid semantic + keyword search over embedding records.

Usage:
    service = SearchService(store, provider)
    results = service.search("What did we decide about the budget?", top_k=5)

    # Callers that only want notes (or meetings) post-filter
    notes = service.search_notes("onboarding ideas")
"""

from dataclasses import dataclass
from typing import Optional

from logging_utils import get_class_logger

from .embeddings import EmbeddingProvider
from .scoring import (
    SIMILARITY_THRESHOLD,
    STOP_WORDS,
    combined_score,
    cosine_similarity,
    extract_keywords,
    keyword_boost,
    meets_threshold,
)
from .vector_store import SOURCE_TYPES, EmbeddingRecord, RecordStore, SourceType

DEFAULT_TOP_K = 5


@dataclass(frozen=True)
class SearchResult:
    """A scored chunk. Built fresh for every query and never stored."""
    record: EmbeddingRecord
    score: float

    @property
    def chunk_text(self) -> str:
        return self.record.chunk_text

    @property
    def source_type(self) -> SourceType:
        return self.record.source_type

    @property
    def parent_id(self) -> str:
        return self.record.parent_id

    def to_dict(self) -> dict:
        return {
            "record_id": self.record.id,
            "parent_id": self.record.parent_id,
            "source_type": self.record.source_type,
            "chunk_index": self.record.chunk_index,
            "chunk_text": self.record.chunk_text,
            "score": self.score,
        }


class SearchService:
    """
    Ranks stored chunks against a natural-language query.

    Scoring per record:
        semantic = cosine(query vector, record vector)
        combined = min(1.0, semantic + keyword boost)
    Records below the similarity threshold are dropped, the rest are sorted
    by score (ties keep store order) and cut to top_k.

    The service holds no state of its own; every call reads the store.
    """

    def __init__(
        self,
        store: RecordStore,
        provider: EmbeddingProvider,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        default_top_k: int = DEFAULT_TOP_K,
        stop_words: frozenset[str] = STOP_WORDS,
    ):
        self._store = store
        self._provider = provider
        self._similarity_threshold = similarity_threshold
        self._default_top_k = default_top_k
        self._stop_words = stop_words
        self.logger = get_class_logger(self.__class__)

    @property
    def default_top_k(self) -> int:
        return self._default_top_k

    def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        source_type: Optional[SourceType] = None,
    ) -> list[SearchResult]:
        """
        Execute a search query.

        Args:
            query: The user's question
            top_k: Maximum number of results (defaults to default_top_k)
            source_type: Optional post-filter applied after the top_k cut

        Returns:
            SearchResults sorted by score, highest first. Empty if the query
            is blank or the embedding provider can't embed it.
        """
        top_k = self._default_top_k if top_k is None else top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise ValueError(f"top_k must be a positive integer, got {top_k!r}")
        if source_type is not None and source_type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {source_type!r}")

        if not query or not query.strip():
            return []

        query_vector = self._query_vector(query)
        if not query_vector:
            return []

        keywords = extract_keywords(query, self._stop_words)
        scored = self._score_records(query_vector, keywords)

        # list.sort is stable, so equal scores keep store order
        scored.sort(key=lambda result: result.score, reverse=True)
        results = scored[:top_k]

        if source_type is not None:
            results = [r for r in results if r.source_type == source_type]

        self.logger.debug(
            "Query %r: keywords=%s matched=%d returned=%d",
            query, keywords, len(scored), len(results),
        )
        return results

    def search_meetings(self, query: str, top_k: Optional[int] = None) -> list[SearchResult]:
        return self.search(query, top_k=top_k, source_type="meeting")

    def search_notes(self, query: str, top_k: Optional[int] = None) -> list[SearchResult]:
        return self.search(query, top_k=top_k, source_type="note")

    def _query_vector(self, query: str) -> Optional[list[float]]:
        if not self._provider.is_available:
            self.logger.warning("Embedding provider unavailable; returning no results")
            return None
        vector = self._provider.generate_vector(query)
        if vector is None or len(vector) == 0:
            self.logger.warning("No vector for query %r; returning no results", query)
            return None
        return list(vector)

    def _score_records(self, query_vector: list[float], keywords: list[str]) -> list[SearchResult]:
        dimension = len(query_vector)
        results = []
        mismatched = 0

        for record in self._store.all_records():
            # Records from another embedding model stay stored but can't be compared
            if record.dimensions != dimension:
                mismatched += 1
                continue

            semantic = cosine_similarity(query_vector, record.vector)
            score = combined_score(semantic, keyword_boost(keywords, record.chunk_text))
            if meets_threshold(score, self._similarity_threshold):
                results.append(SearchResult(record=record, score=score))

        if mismatched:
            self.logger.debug("Skipped %d records with dimension != %d", mismatched, dimension)
        return results

    def get_index_stats(self) -> dict:
        """Get statistics about the record store."""
        return self._store.stats()

    def health_check(self) -> dict:
        """
        Check the health of the search system.

        Returns:
            Dict with status ("healthy", "degraded" when the provider is
            unavailable, "unhealthy" when the store can't be read)
        """
        try:
            stats = self._store.stats()
        except Exception as e:
            self.logger.error("Record store health check failed: %s", e)
            return {
                "status": "unhealthy",
                "error": str(e)
            }

        provider_available = self._provider.is_available
        return {
            "status": "healthy" if provider_available else "degraded",
            "provider_available": provider_available,
            "similarity_threshold": self._similarity_threshold,
            "default_top_k": self._default_top_k,
            "index_stats": stats
        }
