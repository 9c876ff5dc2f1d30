"""
Query normalization: turn a free-text query into a precise search
expression and guess the language it was written in.

The expression uses boolean full-text syntax understood by both the
catalog adapter and the Google Books `q` parameter:

    "harry potter y la piedra"   exact phrase
    +jane +austen                every term required
    tolkien                      plain term
"""

import re
from typing import List


CONJUNCTIONS = frozenset({"y", "and"})

SPANISH_STOP_WORDS = frozenset({
    "y", "el", "la", "de", "del", "los", "las", "un", "una",
    "con", "en", "para", "por", "sin", "sobre", "entre",
})

ENGLISH_STOP_WORDS = frozenset({
    "and", "the", "of", "in", "to", "for", "with", "on", "at",
    "by", "from", "about", "into", "through",
})

SPANISH_CHARACTERS = re.compile(r"[áéíóúñüÁÉÍÓÚÑÜ]")

DEFAULT_QUERY_LANGUAGE = "en"


def tokenize(text: str) -> List[str]:
    """Split on whitespace, dropping empty tokens."""
    return text.split()


def build_precise_query(raw_query: str) -> str:
    """
    Build a precise search expression from a free-text query.

    Multi-word queries are biased towards precision (exact phrase), two-word
    queries require both terms, single words are passed through.

    Examples:
        >>> build_precise_query("Harry Potter y la Piedra")
        '"Harry Potter y la Piedra"'
        >>> build_precise_query("Jane Austen")
        '+Jane +Austen'
        >>> build_precise_query("  Tolkien ")
        'Tolkien'
    """
    query = raw_query.strip()
    words = tokenize(query)

    if any(word.lower() in CONJUNCTIONS for word in words):
        return f'"{query}"'

    if len(words) >= 3:
        return f'"{query}"'

    if len(words) == 2:
        return " ".join(f"+{word}" for word in words)

    return query


def detect_language(query: str) -> str:
    """
    Guess whether a query is Spanish or English.

    Counts stop-word hits for each language; on a tie (including no hits)
    the presence of Spanish diacritics decides.

    Returns:
        "es" or "en"
    """
    words = tokenize(query.lower())

    spanish_matches = sum(1 for word in words if word in SPANISH_STOP_WORDS)
    english_matches = sum(1 for word in words if word in ENGLISH_STOP_WORDS)

    if spanish_matches > english_matches:
        return "es"
    if english_matches > spanish_matches:
        return "en"

    if SPANISH_CHARACTERS.search(query):
        return "es"
    return DEFAULT_QUERY_LANGUAGE
