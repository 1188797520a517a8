"""
Errors raised by the retrieval engine.

Only infrastructure failures surface as exceptions. A missing vector, an empty
document or a dimension mismatch just produce fewer results.
"""


class SearchError(Exception):
    """Base class for retrieval engine errors."""


class PersistenceError(SearchError):
    """The record store could not read, save or delete records."""


class UnsupportedDocumentError(SearchError):
    """The indexer was given something that is neither a meeting nor a note."""
