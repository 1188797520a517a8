"""
Indexing pipeline for the search system.

Handles indexing of:
- Meetings (overview, notes, purpose/outcomes, action items)
- Notes

Indexing a document always replaces its previous records, so calling it
twice on unchanged content leaves an equivalent record set behind.

Concurrency: indexing different documents in parallel is safe. Indexing the
same document from two threads at once must be serialized by the caller;
otherwise the last replace wins.
"""

import threading
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, Optional, Union

from logging_utils import get_class_logger
from models import MeetingRecord, Note

from .chunker import Chunker
from .embeddings import EmbeddingProvider
from .exceptions import UnsupportedDocumentError
from .vector_store import EmbeddingRecord, RecordStore, SourceType

Document = Union[MeetingRecord, Note]


@dataclass
class IndexResult:
    """Outcome of indexing one document."""
    parent_id: str
    source_type: SourceType
    chunks_total: int
    records_written: int

    @property
    def chunks_skipped(self) -> int:
        return self.chunks_total - self.records_written

    def to_dict(self) -> dict:
        data = asdict(self)
        data["chunks_skipped"] = self.chunks_skipped
        return data


class SearchIndexer:
    """
    Indexer for the semantic search system.

    Call index_document() whenever a meeting or note is created or edited,
    and remove_document() when it is deleted.
    """

    def __init__(
        self,
        store: RecordStore,
        provider: EmbeddingProvider,
        chunker: Optional[Chunker] = None,
    ):
        self._store = store
        self._provider = provider
        self._chunker = chunker or Chunker()
        self.logger = get_class_logger(self.__class__)

    def index_document(self, document: Document) -> IndexResult:
        """Index a meeting or a note, replacing whatever was indexed for it before."""
        if isinstance(document, MeetingRecord):
            return self.index_meeting(document)
        if isinstance(document, Note):
            return self.index_note(document)
        raise UnsupportedDocumentError(
            f"Cannot index object of type {type(document).__name__}"
        )

    def index_meeting(self, meeting: MeetingRecord) -> IndexResult:
        chunks = self._chunker.chunk_meeting(meeting)
        return self._replace(meeting, "meeting", chunks)

    def index_note(self, note: Note) -> IndexResult:
        chunks = self._chunker.chunk_note(note)
        return self._replace(note, "note", chunks)

    def index_documents(
        self,
        documents: Iterable[Document],
        cancel_event: Optional[threading.Event] = None,
        on_result: Optional[Callable[[IndexResult], None]] = None,
    ) -> list[IndexResult]:
        """
        Index a backlog of documents.

        cancel_event is checked between documents: a document is either fully
        re-indexed or not touched at all. on_result is called after each
        document, so progress is visible even if a later document raises.
        """
        results = []
        for document in documents:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info(
                    "Backlog indexing cancelled after %d documents", len(results)
                )
                break
            result = self.index_document(document)
            results.append(result)
            if on_result is not None:
                on_result(result)
        return results

    def remove_document(self, document: Document) -> int:
        """
        Delete every record owned by a document.

        Removes the owned handles first, then sweeps by parent id to catch
        anything the handles missed.
        """
        removed = self._store.delete(document.embedding_ids)
        removed += self._store.delete_by_parent(document.id)
        document.embedding_ids = []
        self.logger.info("Removed %d records for parent=%s", removed, document.id)
        return removed

    def remove_parent(self, parent_id: str) -> int:
        """Delete every record owned by a parent known only by id."""
        removed = self._store.delete_by_parent(parent_id)
        self.logger.info("Removed %d records for parent=%s", removed, parent_id)
        return removed

    def _replace(self, document: Document, source_type: SourceType, chunks: list[str]) -> IndexResult:
        vectors = self._embed(chunks)

        records = [
            EmbeddingRecord(
                chunk_text=chunk,
                vector=vector,
                source_type=source_type,
                chunk_index=index,
                parent_id=document.id,
            )
            for index, (chunk, vector) in enumerate(zip(chunks, vectors))
            if vector is not None and len(vector) > 0
        ]

        # PersistenceError propagates; the document keeps its old handles
        document.embedding_ids = self._store.replace_parent(document.id, records)

        result = IndexResult(
            parent_id=document.id,
            source_type=source_type,
            chunks_total=len(chunks),
            records_written=len(records),
        )
        if result.chunks_skipped:
            self.logger.warning(
                "Indexed %s=%s partially: %d/%d chunks embedded",
                source_type, document.id, result.records_written, result.chunks_total,
            )
        else:
            self.logger.info(
                "Indexed %s=%s: %d chunks", source_type, document.id, result.records_written
            )
        return result

    def _embed(self, chunks: list[str]) -> list[Optional[list[float]]]:
        if not chunks:
            return []
        if not self._provider.is_available:
            self.logger.warning("Embedding provider unavailable; %d chunks skipped", len(chunks))
            return [None] * len(chunks)

        vectors = self._provider.generate_vectors(chunks)
        if len(vectors) != len(chunks):
            # Misaligned output: treat every chunk as unembedded
            self.logger.warning(
                "Provider returned %d vectors for %d chunks; skipping document",
                len(vectors), len(chunks),
            )
            return [None] * len(chunks)
        return vectors
