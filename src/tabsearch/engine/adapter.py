"""Synchronous full-text engine binding addressed by database index."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from tabsearch.engine.search import (
    RankedHit,
    SearchDocument,
    bm25_rank,
    build_snippet,
    parse_query,
)

ERROR_PREFIX = "Error: "
DOCUMENTS_FILE = "documents.jsonl"

LANGUAGES = {
    "ar": "arabic",
    "fa": "arabic",
    "hy": "armenian",
    "eu": "basque",
    "ca": "catalan",
    "da": "danish",
    "nl": "dutch",
    "en": "english",
    "fi": "finnish",
    "fr": "french",
    "de": "german",
    "hu": "hungarian",
    "id": "indonesian",
    "ga": "irish",
    "it": "italian",
    "lt": "lithuanian",
    "ne": "nepali",
    "no": "norwegian",
    "nn": "norwegian",
    "nb": "norwegian",
    "pt": "portuguese",
    "ro": "romanian",
    "ru": "russian",
    "es": "spanish",
    "sv": "swedish",
    "ta": "tamil",
    "tr": "turkish",
}

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Raised when the engine cannot complete a write or lookup."""


def language(code: str) -> str:
    """Map a BCP-47 language tag to the engine's stemmer language."""
    primary = code.split("-")[0].lower()
    return LANGUAGES.get(primary, "english")


@dataclass(slots=True)
class _Database:
    path: Path
    documents: dict[str, SearchDocument] = field(default_factory=dict)
    dirty: bool = False


class SearchEngine:
    """Keeps one in-memory document map per database index.

    Writes stay in memory until ``commit`` flushes the database to its path.
    ``query`` leaves a result cursor behind that ``key``, ``percent`` and
    ``snippet`` read from, mirroring a match-set style engine API.
    """

    def __init__(self) -> None:
        self._databases: dict[int, _Database] = {}
        self._hits: list[RankedHit] = []
        self._top_score = 0.0
        self._terms: list[str] = []
        self._prefix: str | None = None

    def prepare(self, db_index: int, path: str) -> None:
        """Open or create the database at ``path`` under ``db_index``."""
        database = _Database(path=Path(path))
        database.path.mkdir(parents=True, exist_ok=True)
        documents_path = database.path / DOCUMENTS_FILE
        if documents_path.exists():
            for row in _read_jsonl(documents_path):
                document = _document_from_row(row)
                if document is None:
                    continue
                database.documents[document.guid] = document
        self._databases[db_index] = database
        logger.debug(
            "prepared database %d at %s (%d docs)", db_index, path, len(database.documents)
        )

    def release(self, db_index: int) -> None:
        """Forget an open database without flushing it."""
        self._databases.pop(db_index, None)

    def is_prepared(self, db_index: int) -> bool:
        return db_index in self._databases

    def prepared_indexes(self) -> tuple[int, ...]:
        return tuple(sorted(self._databases))

    def add(
        self,
        db_index: int,
        guid: str,
        lang: str,
        hostname: str,
        url: str,
        date: str,
        path: str,
        mime: str,
        title: str,
        keywords: str,
        description: str,
        body: str,
    ) -> None:
        """Insert or replace the document stored under ``guid``."""
        database = self._database(db_index)
        database.documents[guid] = SearchDocument(
            guid=guid,
            lang=lang,
            hostname=hostname,
            url=url,
            date=date,
            path=path,
            mime=mime,
            title=title,
            keywords=keywords,
            description=description,
            body=body,
        )
        database.dirty = True

    def clean(self, db_index: int, guid: str) -> None:
        """Delete the document stored under ``guid``, if any."""
        database = self._database(db_index)
        if database.documents.pop(guid, None) is not None:
            database.dirty = True

    def commit(self, db_index: int) -> None:
        """Flush the in-memory database to its durable path."""
        database = self._database(db_index)
        if not database.dirty and (database.path / DOCUMENTS_FILE).exists():
            return
        rows = [asdict(database.documents[guid]) for guid in sorted(database.documents)]
        try:
            database.path.mkdir(parents=True, exist_ok=True)
            _atomic_write_jsonl(database.path / DOCUMENTS_FILE, rows)
        except OSError as error:
            raise EngineError(f"commit of database {db_index} failed: {error}") from error
        database.dirty = False

    def query(
        self,
        db_index: int,
        lang: str,
        query: str,
        start: int,
        length: int,
        partial: bool,
        spell_correction: bool,
        synonym: bool,
        descending: bool,
    ) -> str:
        """Run a query and return ``"size/estimated"`` or an error-tagged string.

        ``spell_correction`` and ``synonym`` are accepted for interface
        compatibility and do not change the result.
        """
        database = self._databases.get(db_index)
        if database is None:
            return f"{ERROR_PREFIX}database {db_index} is not prepared"
        terms = parse_query(query)
        if not terms:
            return f"{ERROR_PREFIX}query has no searchable terms"
        if start < 0 or length < 0:
            return f"{ERROR_PREFIX}start and length must be non-negative"

        ranked = bm25_rank(list(database.documents.values()), terms, partial=partial)
        if not descending:
            ranked.reverse()
        self._hits = ranked[start : start + length]
        self._top_score = max((hit.score for hit in ranked), default=0.0)
        self._terms = terms
        self._prefix = terms[-1] if partial else None
        return f"{len(self._hits)}/{len(ranked)}"

    def key(self, result_index: int) -> str:
        """Return the guid of the ``result_index``-th hit of the last query."""
        if 0 <= result_index < len(self._hits):
            return self._hits[result_index].guid
        return ""

    def percent(self, result_index: int) -> int:
        """Return the relevance of a hit relative to the best match, 0-100."""
        if not 0 <= result_index < len(self._hits) or self._top_score <= 0:
            return 0
        return round(self._hits[result_index].score / self._top_score * 100)

    def snippet(self, lang: str, content: str, size: int, omit: str) -> str:
        """Highlight the last query's terms inside ``content``."""
        return build_snippet(content, self._terms, size, omit=omit, prefix=self._prefix)

    def destroy(self, db_index: int) -> None:
        """Release a database and delete its files."""
        database = self._databases.pop(db_index, None)
        if database is not None and database.path.exists():
            shutil.rmtree(database.path)

    def _database(self, db_index: int) -> _Database:
        database = self._databases.get(db_index)
        if database is None:
            raise EngineError(f"database {db_index} is not prepared")
        return database


def _document_from_row(row: dict[str, object]) -> SearchDocument | None:
    values: dict[str, str] = {}
    for item in fields(SearchDocument):
        value = row.get(item.name)
        if not isinstance(value, str):
            return None
        values[item.name] = value
    return SearchDocument(**values)


def _read_jsonl(path: Path) -> list[dict[str, object]]:
    output: list[dict[str, object]] = []
    with path.open("r", encoding="utf-8") as handle:
        for raw_line in handle:
            stripped = raw_line.strip()
            if not stripped:
                continue
            try:
                obj = json.loads(stripped)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, dict):
                output.append(obj)
    return output


def _atomic_write_jsonl(path: Path, rows: list[dict[str, object]]) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as handle:
        for row in rows:
            handle.write(json.dumps(row, sort_keys=True))
            handle.write("\n")
    tmp.replace(path)
