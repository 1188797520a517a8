import os
import threading
from typing import Optional

from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError

from config import get_config
from logging_utils import get_logger
from models import MeetingRecord, Note
from rag import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    PersistenceError,
    RecordStore,
    SearchIndexer,
    SearchService,
    create_record_store,
)
from rag.chunker import Chunker
from rag.vector_store import SOURCE_TYPES

logger = get_logger("app")


class BacklogJob:
    """A background indexing pass that can be cancelled between documents."""

    def __init__(self, indexer: SearchIndexer, documents: list):
        self.total = len(documents)
        self.results = []
        self.error: Optional[str] = None
        self.cancel_event = threading.Event()
        self._indexer = indexer
        self._documents = documents
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self):
        self._thread.start()

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self):
        try:
            self._indexer.index_documents(
                self._documents, self.cancel_event, on_result=self.results.append
            )
        except PersistenceError as e:
            logger.error("Backlog indexing failed: %s", e)
            self.error = str(e)

    def to_dict(self) -> dict:
        return {
            'running': self.running,
            'cancelled': self.cancel_event.is_set(),
            'total': self.total,
            'indexed': len(self.results),
            'error': self.error,
        }


def create_app(
    config_name: Optional[str] = None,
    *,
    store: Optional[RecordStore] = None,
    provider: Optional[EmbeddingProvider] = None,
):
    """
    Application factory.

    store and provider default to the ones named by config; tests pass their own.
    """
    cfg = get_config(config_name)

    app = Flask(__name__)
    app.config.from_object(cfg)

    # Enable CORS for frontend
    app_url = os.getenv('APP_URL', 'http://localhost:5173')
    CORS(app, origins=[app_url])

    store = store if store is not None else create_record_store(cfg.RAG_DB_PATH)
    provider = provider if provider is not None else OpenAIEmbeddingProvider.from_config(cfg)

    app.extensions['search_indexer'] = SearchIndexer(
        store,
        provider,
        Chunker(cfg.RAG_MAX_CHUNK_CHARS, cfg.RAG_MIN_CHUNK_CHARS),
    )
    app.extensions['search_service'] = SearchService(
        store,
        provider,
        similarity_threshold=cfg.RAG_SIMILARITY_THRESHOLD,
        default_top_k=cfg.RAG_DEFAULT_TOP_K,
    )
    app.extensions['backlog_job'] = None
    app.extensions['backlog_lock'] = threading.Lock()

    if not provider.is_available:
        logger.warning("Embedding provider unavailable; indexing and search will return nothing")

    register_routes(app)

    return app


def _parse_document(data: dict):
    """Build a MeetingRecord or Note from a backlog entry tagged with 'type'."""
    doc_type = data.get('type')
    if doc_type == 'meeting':
        return MeetingRecord.model_validate(data.get('document') or {})
    if doc_type == 'note':
        return Note.model_validate(data.get('document') or {})
    raise ValueError(f"Unknown document type: {doc_type!r}")


def register_routes(app):
    """Register all API routes."""

    indexer: SearchIndexer = app.extensions['search_indexer']
    service: SearchService = app.extensions['search_service']

    def _index(model_cls):
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400
        try:
            document = model_cls.model_validate(data)
        except ValidationError as e:
            return jsonify({'error': 'Invalid document', 'details': e.errors(include_url=False, include_context=False)}), 400

        try:
            result = indexer.index_document(document)
        except PersistenceError as e:
            logger.error("Failed to persist records for %s: %s", document.id, e)
            return jsonify({'error': 'Failed to save embedding records'}), 500

        response = result.to_dict()
        response['embeddingIds'] = document.embedding_ids
        return jsonify(response), 200

    # ==================== INDEXING ENDPOINTS ====================

    @app.route('/index/meeting', methods=['POST'])
    def index_meeting():
        """
        Index (or re-index) a meeting.

        Request Body:
            A MeetingRecord (title, start_date, notes, attendees, ...)

        Returns:
            IndexResult counts plus the ids of the records now owned by the meeting
        """
        return _index(MeetingRecord)

    @app.route('/index/note', methods=['POST'])
    def index_note():
        """
        Index (or re-index) a note. A note without body text ends up with no records.
        """
        return _index(Note)

    @app.route('/index/backlog', methods=['POST'])
    def start_backlog():
        """
        Index many documents in a background thread.

        Request Body:
            documents (list): entries of the form {"type": "meeting"|"note", "document": {...}}

        Returns:
            202 with job status, or 409 if a backlog pass is already running
        """
        data = request.get_json(silent=True) or {}
        entries = data.get('documents')
        if not isinstance(entries, list):
            return jsonify({'error': 'documents must be a list'}), 400

        try:
            documents = [_parse_document(entry) for entry in entries]
        except (ValidationError, ValueError, AttributeError) as e:
            return jsonify({'error': f'Invalid backlog entry: {e}'}), 400

        # Only one backlog pass at a time
        with app.extensions['backlog_lock']:
            current = app.extensions['backlog_job']
            if current is not None and current.running:
                return jsonify({'error': 'A backlog pass is already running'}), 409

            job = BacklogJob(indexer, documents)
            app.extensions['backlog_job'] = job
            job.start()
        return jsonify(job.to_dict()), 202

    @app.route('/index/backlog', methods=['GET'])
    def backlog_status():
        job = app.extensions['backlog_job']
        if job is None:
            return jsonify({'error': 'No backlog pass has been started'}), 404
        return jsonify(job.to_dict()), 200

    @app.route('/index/backlog', methods=['DELETE'])
    def cancel_backlog():
        """Cancel the running backlog pass. Documents already indexed stay indexed."""
        job = app.extensions['backlog_job']
        if job is None:
            return jsonify({'error': 'No backlog pass has been started'}), 404
        job.cancel_event.set()
        return jsonify(job.to_dict()), 200

    @app.route('/documents/<parent_id>', methods=['DELETE'])
    def delete_document(parent_id):
        """Delete every embedding record owned by a meeting or note."""
        try:
            deleted = indexer.remove_parent(parent_id)
        except PersistenceError as e:
            logger.error("Failed to delete records for %s: %s", parent_id, e)
            return jsonify({'error': 'Failed to delete embedding records'}), 500
        return jsonify({'parentId': parent_id, 'deleted': deleted}), 200

    # ==================== SEARCH ENDPOINTS ====================

    @app.route('/search', methods=['POST'])
    def search():
        """
        Hybrid search over indexed meetings and notes.

        Request Body:
            query (str): The user's question
            top_k (int, optional): Maximum number of results
            source_type (str, optional): "meeting" or "note"

        Returns:
            results (list): Scored chunks, highest score first
        """
        data = request.get_json(silent=True) or {}
        query = data.get('query')
        if not isinstance(query, str) or not query.strip():
            return jsonify({'error': 'query is required'}), 400

        top_k = data.get('top_k', service.default_top_k)
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            return jsonify({'error': 'top_k must be a positive integer'}), 400

        source_type = data.get('source_type')
        if source_type is not None and source_type not in SOURCE_TYPES:
            return jsonify({'error': f'source_type must be one of {SOURCE_TYPES}'}), 400

        try:
            results = service.search(query, top_k=top_k, source_type=source_type)
        except PersistenceError as e:
            logger.error("Search failed reading the record store: %s", e)
            return jsonify({'error': 'Search is temporarily unavailable'}), 500

        return jsonify({
            'query': query,
            'results': [r.to_dict() for r in results]
        }), 200

    @app.route('/search/stats', methods=['GET'])
    def search_stats():
        try:
            return jsonify(service.get_index_stats()), 200
        except PersistenceError as e:
            return jsonify({'error': str(e)}), 500

    @app.route('/search/health', methods=['GET'])
    def search_health():
        health = service.health_check()
        status_code = 503 if health['status'] == 'unhealthy' else 200
        return jsonify(health), status_code


# ==================== MAIN ====================

if __name__ == '__main__':
    app = create_app()
    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', '5001'))
    app.run(host=host, port=port, debug=app.config.get('DEBUG', False), threaded=True)
