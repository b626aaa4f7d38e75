"""Content storage, full-text engine binding and their coordinator."""

from .adapter import LANGUAGES, EngineError, SearchEngine, language
from .coordinator import (
    DEFAULT_DB_INDEX,
    ContentCoordinator,
    LookupMissError,
    SearchError,
    SearchSummary,
)
from .objects import ObjectStore
from .search import SearchDocument, bm25_rank, build_snippet, tokenize

__all__ = [
    "ContentCoordinator",
    "DEFAULT_DB_INDEX",
    "EngineError",
    "LANGUAGES",
    "LookupMissError",
    "ObjectStore",
    "SearchDocument",
    "SearchEngine",
    "SearchError",
    "SearchSummary",
    "bm25_rank",
    "build_snippet",
    "language",
    "tokenize",
]
