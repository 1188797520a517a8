"""
Retrieval engine for meetings and notes.

This module provides:
- Embedding provider interface (OpenAI text-embedding-3-small implementation)
- Chunker that turns meetings and notes into self-describing text chunks
- Embedding record stores (in-memory and SQLite)
- Indexer with replace-on-reindex semantics
- Hybrid search service (cosine similarity + keyword boost)
"""

from .chunker import Chunker
from .embeddings import EmbeddingProvider, OpenAIEmbeddingProvider
from .exceptions import PersistenceError, SearchError, UnsupportedDocumentError
from .indexer import IndexResult, SearchIndexer
from .scoring import STOP_WORDS, cosine_similarity
from .service import SearchResult, SearchService
from .vector_store import (
    EmbeddingRecord,
    InMemoryRecordStore,
    RecordStore,
    SQLiteRecordStore,
    create_record_store,
)

__all__ = [
    "Chunker",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "PersistenceError",
    "SearchError",
    "UnsupportedDocumentError",
    "IndexResult",
    "SearchIndexer",
    "STOP_WORDS",
    "cosine_similarity",
    "SearchResult",
    "SearchService",
    "EmbeddingRecord",
    "InMemoryRecordStore",
    "RecordStore",
    "SQLiteRecordStore",
    "create_record_store",
]
