"""BM25 ranking and highlighted snippets over indexed page documents."""

from __future__ import annotations

import html
import math
import re
from collections import Counter
from dataclasses import dataclass

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)
BM25_K1 = 1.2
BM25_B = 0.75
HIGHLIGHT_START = "<b>"
HIGHLIGHT_END = "</b>"


@dataclass(slots=True, frozen=True)
class SearchDocument:
    """Engine-side document correlated with a content record by guid."""

    guid: str
    lang: str
    hostname: str
    url: str
    date: str
    path: str
    mime: str
    title: str
    keywords: str
    description: str
    body: str

    def text(self) -> str:
        return "\n".join(
            (self.title, self.keywords, self.description, self.hostname, self.body)
        )


@dataclass(slots=True, frozen=True)
class RankedHit:
    """One ranked match before it is exposed through the engine cursor."""

    guid: str
    score: float
    matched_terms: tuple[str, ...]


def tokenize(text: str) -> list[str]:
    """Tokenize into lowercase word terms."""
    return [match.group(0).lower() for match in TOKEN_PATTERN.finditer(text)]


def parse_query(query: str) -> list[str]:
    """Return distinct query terms in their original order."""
    terms: list[str] = []
    for term in tokenize(query):
        if term not in terms:
            terms.append(term)
    return terms


def bm25_rank(
    documents: list[SearchDocument],
    terms: list[str],
    partial: bool = False,
) -> list[RankedHit]:
    """Rank documents for the query terms, best first, ties broken by guid.

    With ``partial`` the last term also matches any token it prefixes, so a
    query typed incrementally finds results before the word is complete.
    """
    if not terms or not documents:
        return []

    doc_counts = [Counter(tokenize(doc.text())) for doc in documents]
    doc_lens = [sum(counts.values()) for counts in doc_counts]
    avgdl = sum(doc_lens) / len(doc_lens)
    if avgdl <= 0:
        return []

    prefix = terms[-1] if partial else None
    term_freqs: list[dict[str, int]] = []
    doc_freq: Counter[str] = Counter()
    for counts in doc_counts:
        freqs: dict[str, int] = {}
        for term in terms:
            if term == prefix:
                tf = sum(count for token, count in counts.items() if token.startswith(term))
            else:
                tf = counts.get(term, 0)
            if tf:
                freqs[term] = tf
                doc_freq[term] += 1
        term_freqs.append(freqs)

    hits: list[RankedHit] = []
    total_docs = len(documents)
    for doc, freqs, doc_len in zip(documents, term_freqs, doc_lens, strict=True):
        score = 0.0
        for term, tf in freqs.items():
            n_qi = doc_freq[term]
            idf = math.log(1.0 + ((total_docs - n_qi + 0.5) / (n_qi + 0.5)))
            denom = tf + BM25_K1 * (1.0 - BM25_B + BM25_B * (doc_len / avgdl))
            score += idf * ((tf * (BM25_K1 + 1.0)) / denom)
        if score <= 0:
            continue
        hits.append(RankedHit(guid=doc.guid, score=score, matched_terms=tuple(sorted(freqs))))

    hits.sort(key=lambda hit: (-hit.score, hit.guid))
    return hits


def build_snippet(
    content: str,
    terms: list[str],
    size: int,
    omit: str = "",
    prefix: str | None = None,
) -> str:
    """Cut the window of ``content`` densest in query terms and mark the matches.

    The window holds at most ``size`` characters of source text; ``omit`` is
    inserted where the window cuts the text off. Tokens starting with
    ``prefix`` count as matches too.
    """
    if size < 1 or not content:
        return ""
    wanted = set(terms)
    matches = [
        match
        for match in TOKEN_PATTERN.finditer(content)
        if _term_matches(match.group(0).lower(), wanted, prefix)
    ]

    start = 0
    if matches and len(content) > size:
        best_count = -1
        for anchor in matches:
            candidate = max(0, anchor.start() - size // 4)
            limit = candidate + size
            count = sum(
                1 for match in matches if candidate <= match.start() and match.end() <= limit
            )
            if count > best_count:
                best_count = count
                start = candidate
        start = _snap_start(content, start)
    end = min(len(content), start + size)
    if end < len(content):
        end = _snap_end(content, start, end)

    pieces: list[str] = []
    if start > 0:
        pieces.append(omit)
    cursor = start
    for match in matches:
        if match.start() < start or match.end() > end:
            continue
        pieces.append(html.escape(content[cursor : match.start()]))
        pieces.append(f"{HIGHLIGHT_START}{html.escape(match.group(0))}{HIGHLIGHT_END}")
        cursor = match.end()
    pieces.append(html.escape(content[cursor:end]))
    if end < len(content):
        pieces.append(omit)
    return "".join(pieces).strip()


def _term_matches(token: str, wanted: set[str], prefix: str | None) -> bool:
    if token in wanted:
        return True
    return prefix is not None and token.startswith(prefix)


def _snap_start(content: str, start: int) -> int:
    if start == 0:
        return 0
    space = content.find(" ", start)
    if space == -1 or space - start > 20:
        return start
    return space + 1


def _snap_end(content: str, start: int, end: int) -> int:
    space = content.rfind(" ", start, end)
    if space <= start:
        return end
    return space
