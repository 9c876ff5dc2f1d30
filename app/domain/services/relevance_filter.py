"""
Relevance filtering and ranking of candidate books against a query.

Short queries are ambiguous ("dune", "king"), so any partial hit is kept.
Long queries usually name a specific book ("el amor en los tiempos del
colera"), so candidates must share a good part of the query's words with
their title and authors.
"""

import logging
import math
from typing import Iterable, List, Optional

from app.domain.entities import Book, BookSearchResult


logger = logging.getLogger(__name__)

LONG_QUERY_LENGTH = 15
"""Queries longer than this many characters use the token-overlap rule"""

MIN_TOKEN_OVERLAP = 0.4
"""Share of query words that must fuzzy-match a long-query candidate"""

MIN_STORED_WORD_MATCH = 0.6
"""Share of significant query words a stored record must contain (short queries)"""

UNKNOWN_LANGUAGE = "en"
"""Language assumed for provider candidates that do not declare one"""


def _query_words(query_lower: str, min_length: int) -> List[str]:
    return [word for word in query_lower.split() if len(word) > min_length]


def _token_overlap(query_words: List[str], title: str, authors: str) -> float:
    """Fraction of query words that are a substring of, or contain, a title/author word."""
    if not query_words:
        return 0.0

    book_words = title.split() + authors.split()
    match_count = sum(
        1
        for query_word in query_words
        if any(book_word in query_word or query_word in book_word for book_word in book_words)
    )
    return match_count / len(query_words)


def _log(query_id: Optional[str], message: str, *args: object) -> None:
    logger.debug("[%s] " + message, query_id or "-", *args, extra={"query_id": query_id})


def is_relevant_external(book: Book, query: str, query_id: Optional[str] = None) -> bool:
    """Decide whether a provider candidate is relevant enough to keep."""
    query_lower = query.lower()
    title = book.title.lower()
    authors = book.get_authors_text()

    if query_lower in title:
        _log(query_id, "MATCH full query in title: %r", book.title)
        return True

    if query_lower in authors:
        _log(query_id, "MATCH full query in authors: %r", book.title)
        return True

    query_words = _query_words(query_lower, min_length=1)

    if len(query) > LONG_QUERY_LENGTH:
        score = _token_overlap(query_words, title, authors)
        if score >= MIN_TOKEN_OVERLAP:
            _log(query_id, "MATCH relevance score %.2f: %r", score, book.title)
            return True
        _log(query_id, "NO MATCH relevance score %.2f: %r", score, book.title)
        return False

    if any(word in title or word in authors for word in query_words):
        _log(query_id, "MATCH partial: %r", book.title)
        return True

    _log(query_id, "NO MATCH: %r", book.title)
    return False


def filter_external_candidates(
    candidates: List[Book],
    query: str,
    language_hint: Optional[str] = None,
    query_id: Optional[str] = None,
) -> List[Book]:
    """
    Keep relevant provider candidates and order them.

    Ordering: candidates in `language_hint` first, then those whose title
    contains the whole query. Ties keep provider order.

    Args:
        candidates: Books returned by the external provider, in provider order
        query: The caller's original (not normalized) query
        language_hint: Preferred ISO 639-1 language, if any
        query_id: Request identifier used in log events

    Returns:
        Filtered and sorted list of candidates
    """
    query_lower = query.lower()
    kept = [book for book in candidates if is_relevant_external(book, query, query_id)]

    def sort_key(book: Book) -> tuple:
        language = book.language or UNKNOWN_LANGUAGE
        is_preferred = bool(language_hint) and language == language_hint
        contains_query = query_lower in book.title.lower()
        return (not is_preferred, not contains_query)

    ranked = sorted(kept, key=sort_key)

    _log(query_id, "Filtered provider candidates: %s/%s kept", len(ranked), len(candidates))
    return ranked


def filter_stored_candidates(
    candidates: List[Book],
    query: str,
    query_id: Optional[str] = None,
) -> List[Book]:
    """
    Keep catalog records relevant to `query`, preserving their recency order.

    A record is kept when the whole query appears in its title or authors.
    Otherwise long queries need MIN_TOKEN_OVERLAP fuzzy word overlap, and
    short queries need MIN_STORED_WORD_MATCH of their words longer than two
    characters to appear in title or authors.
    """
    query_lower = query.lower()
    is_long = len(query) > LONG_QUERY_LENGTH
    long_words = _query_words(query_lower, min_length=1)
    short_words = _query_words(query_lower, min_length=2)
    required_matches = math.ceil(len(short_words) * MIN_STORED_WORD_MATCH)

    kept: List[Book] = []
    for record in candidates:
        title = record.title.lower()
        authors = " ".join(record.authors).lower()

        if query_lower in title or query_lower in authors:
            kept.append(record)
        elif is_long:
            if _token_overlap(long_words, title, authors) >= MIN_TOKEN_OVERLAP:
                kept.append(record)
        else:
            match_count = sum(1 for word in short_words if word in title or word in authors)
            if match_count >= required_matches:
                kept.append(record)

    _log(query_id, "Filtered stored records: %s/%s kept", len(kept), len(candidates))
    return kept


def sort_by_language_preference(
    results: Iterable[BookSearchResult],
    language_hint: Optional[str],
) -> List[BookSearchResult]:
    """Stable sort putting results in `language_hint` first. No-op without a hint."""
    if not language_hint:
        return list(results)
    return sorted(results, key=lambda result: result.language != language_hint)


def deduplicate_by_external_id(results: Iterable[BookSearchResult]) -> List[BookSearchResult]:
    """
    Drop later results whose external_id was already seen.

    Results without an external_id are always kept.
    """
    seen = set()
    unique = []
    for result in results:
        if result.external_id:
            if result.external_id in seen:
                continue
            seen.add(result.external_id)
        unique.append(result)
    return unique
