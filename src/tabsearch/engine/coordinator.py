"""Keeps content records and search documents correlated by guid."""

from __future__ import annotations

import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from tabsearch.engine.adapter import ERROR_PREFIX, EngineError, SearchEngine, language
from tabsearch.engine.objects import Guid, ObjectStore

DEFAULT_DB_INDEX = 0
DEFAULT_LANG = "english"
DEFAULT_SEARCH_LENGTH = 30
DEFAULT_SNIPPET_SIZE = 300
KEYWORD_SPLIT = re.compile(r"\s*,\s*")

logger = logging.getLogger(__name__)


class SearchError(EngineError):
    """Raised when the engine answers a query with an error instead of a result."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LookupMissError(Exception):
    """Raised when no content record exists for a guid or result index."""

    def __init__(self, guid: str, reason: str = "no result") -> None:
        super().__init__(f"{reason}: {guid}")
        self.guid = guid
        self.reason = reason


@dataclass(slots=True, frozen=True)
class SearchSummary:
    """Match counts for one query."""

    size: int
    estimated: int


class ContentCoordinator:
    """Writes each page to the object store first, then to the search engine.

    The two stores are not transactionally linked: an engine failure after a
    successful object write leaves the content record in place and surfaces
    the error to the caller.
    """

    def __init__(
        self,
        objects: ObjectStore,
        engine: SearchEngine,
        engine_root: Path,
        default_lang: str = DEFAULT_LANG,
        snippet_size: int = DEFAULT_SNIPPET_SIZE,
    ) -> None:
        self._objects = objects
        self._engine = engine
        self._engine_root = engine_root
        self._default_lang = default_lang
        self._snippet_size = snippet_size
        self._paths: dict[int, Path] = {}

    @property
    def objects(self) -> ObjectStore:
        return self._objects

    def open_databases(self) -> tuple[int, ...]:
        return tuple(sorted(self._paths))

    def open(self, db_index: int = DEFAULT_DB_INDEX, path: Path | None = None) -> None:
        """Prepare an engine database; defaults to ``<engine_root>/<db_index>``."""
        resolved = path if path is not None else self._engine_root / str(db_index)
        self._engine.prepare(db_index, str(resolved))
        self._paths[db_index] = resolved

    def close(self, db_index: int = DEFAULT_DB_INDEX) -> None:
        self._engine.release(db_index)
        self._paths.pop(db_index, None)

    def add(
        self,
        fields: dict[str, object],
        hidden: dict[str, object] | None = None,
        guid: str | None = None,
        db_index: int = DEFAULT_DB_INDEX,
    ) -> str:
        """Store a content record and index it; return the resolved guid."""
        url = _text(fields.get("url"))
        hostname, pathname = _split_url(url)
        mime = _text(fields.get("mime"))
        title = _text(fields.get("title"))
        body = _text(fields.get("body"))
        keywords = ",".join(KEYWORD_SPLIT.split(_text(fields.get("keywords"))))
        lang = _text(fields.get("lang")) or self._default_lang

        record: dict[str, object] = {
            "mime": mime,
            "url": url,
            "hostname": hostname,
            "title": title,
            "body": body,
        }
        record.update(hidden or {})
        record["timestamp"] = int(time.time() * 1000)
        if guid:
            record["guid"] = guid

        resolved = str(self._objects.put(record))
        try:
            self._engine.add(
                db_index,
                resolved,
                lang,
                hostname,
                url,
                _text(fields.get("date")),
                pathname,
                mime,
                title,
                keywords,
                _text(fields.get("description")),
                body,
            )
        except EngineError:
            logger.error("indexing guid %s into database %d failed", resolved, db_index)
            raise
        return resolved

    def commit(self, db_index: int = DEFAULT_DB_INDEX) -> None:
        """Flush the engine's in-memory index to durable storage."""
        self._engine.commit(db_index)

    def search(self, params: dict[str, object], db_index: int = DEFAULT_DB_INDEX) -> SearchSummary:
        result = self._engine.query(
            db_index,
            _text(params.get("lang")) or self._default_lang,
            _text(params.get("query")),
            _int(params.get("start"), 0),
            _int(params.get("length"), DEFAULT_SEARCH_LENGTH),
            _bool(params.get("partial"), True),
            _bool(params.get("spell_correction"), False),
            _bool(params.get("synonym"), False),
            _bool(params.get("descending"), True),
        )
        if result.startswith(ERROR_PREFIX):
            raise SearchError(result[len(ERROR_PREFIX) :])
        size, _, estimated = result.partition("/")
        return SearchSummary(size=int(size), estimated=int(estimated))

    def guid(self, index: int) -> str:
        """Return the guid of the ``index``-th result of the last search."""
        guid = self._engine.key(index)
        if not guid:
            raise LookupMissError(str(index), reason="no search result at index")
        return guid

    def percent(self, index: int) -> int:
        return self._engine.percent(index)

    def search_body(self, index: int) -> dict[str, object]:
        return self.body(self.guid(index))

    def snippet(self, params: dict[str, object]) -> str:
        """Snippet raw ``content`` when given, else the stored body of result ``index``."""
        lang = _text(params.get("lang")) or self._default_lang
        omit = _text(params.get("omit"))
        size = _int(params.get("size"), self._snippet_size)
        content = params.get("content")
        if isinstance(content, str) and content:
            return self._engine.snippet(lang, content, size, omit)
        record = self.search_body(_int(params.get("index"), 0))
        body = record.get("body")
        if not isinstance(body, str):
            raise LookupMissError(str(record.get("guid")), reason="record has no stored body")
        return self._engine.snippet(lang, body, size, omit)

    def body(self, guid: Guid) -> dict[str, object]:
        """Load a content record; numeric-looking guids are tried as numbers first.

        A caller-supplied guid such as ``"1"`` is therefore shadowed by the
        generated record ``1``, and both share the search document ``"1"``.
        The served ``engine.add`` method refuses numeric caller guids.
        """
        candidates: list[Guid] = [guid]
        if isinstance(guid, str) and _is_numeric(guid):
            candidates.insert(0, int(guid))
        for candidate in candidates:
            record = self._objects.get(candidate)
            if record is not None:
                return record
        raise LookupMissError(str(guid))

    def remove(self, guid: Guid, db_index: int = DEFAULT_DB_INDEX) -> None:
        """Delete the search document only; the content record is kept."""
        self._engine.clean(db_index, str(guid))

    def language(self, code: str) -> str:
        return language(code)

    def purge(self) -> None:
        """Delete every search database and content record, then reopen empty databases."""
        reopen = dict(self._paths)
        for db_index in reopen:
            self._engine.destroy(db_index)
        if self._engine_root.exists():
            shutil.rmtree(self._engine_root)
        self._paths.clear()
        self._objects.clear()
        for db_index, path in sorted(reopen.items()):
            self.open(db_index, path)
        logger.info("purged search databases %s", sorted(reopen))


def _split_url(url: str) -> tuple[str, str]:
    if not url:
        return "", ""
    parsed = urlparse(url)
    return parsed.hostname or "", parsed.path


def _is_numeric(value: str) -> bool:
    try:
        int(value)
    except ValueError:
        return False
    return True


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _int(value: object, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default
