"""
Value objects for the domain layer.

Value objects are immutable objects that represent descriptive aspects
of the domain with no conceptual identity.
"""

from dataclasses import dataclass
from typing import Optional


MAX_SEARCH_RESULTS = 20
DEFAULT_SEARCH_RESULTS = 10
MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class BookSearchQuery:
    """
    A free-text book search as received from a caller.

    This is the input to BookLookupService.search_books().
    """

    text: str
    """The raw search query text from the user"""

    max_results: int = DEFAULT_SEARCH_RESULTS
    """Maximum number of results to return (1-20)"""

    language_hint: Optional[str] = None
    """Preferred language of the caller's device (ISO 639-1), None for auto-detect"""

    def __post_init__(self) -> None:
        """Validate query constraints."""
        if not self.text or not self.text.strip():
            raise ValueError("Search query text cannot be empty")

        if self.max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {self.max_results}")

        if self.max_results > MAX_SEARCH_RESULTS:
            raise ValueError(
                f"max_results cannot exceed {MAX_SEARCH_RESULTS}, got {self.max_results}"
            )

        # "es-ES" -> "es"; blank means auto-detect
        if self.language_hint is not None:
            normalized = self.language_hint.split("-")[0].strip().lower() or None
            object.__setattr__(self, "language_hint", normalized)

    def cache_key(self) -> str:
        """Key under which the final result list is memoized."""
        return f"search:{self.text}:{self.max_results}:{self.language_hint or 'auto'}"

    @classmethod
    def from_request(
        cls,
        q: Optional[str] = None,
        title: Optional[str] = None,
        author: Optional[str] = None,
        limit: Optional[str] = None,
        lang: Optional[str] = None,
    ) -> "BookSearchQuery":
        """
        Build a query from loosely typed request parameters.

        When `title` and/or `author` are given they are joined into a single
        query and `q` is ignored. `limit` is parsed leniently and clamped to
        MAX_SEARCH_RESULTS.

        Raises:
            ValueError: If no search parameter is given or the combined
                query is shorter than MIN_QUERY_LENGTH characters
        """
        if not q and not title and not author:
            raise ValueError("At least one search parameter is required: q, title or author")

        if title or author:
            parts = [part.strip() for part in (title, author) if part and part.strip()]
            text = " ".join(parts)
        else:
            text = q.strip()

        if len(text) < MIN_QUERY_LENGTH:
            raise ValueError(f"Search query must have at least {MIN_QUERY_LENGTH} characters")

        try:
            max_results = int(limit) if limit is not None else DEFAULT_SEARCH_RESULTS
        except (TypeError, ValueError):
            max_results = DEFAULT_SEARCH_RESULTS
        if max_results < 1:
            max_results = DEFAULT_SEARCH_RESULTS

        return cls(
            text=text,
            max_results=min(max_results, MAX_SEARCH_RESULTS),
            language_hint=lang,
        )


@dataclass(frozen=True)
class DatabaseCacheStats:
    """How much of the catalog was discovered through the external provider."""

    total_books: int
    books_with_external_id: int

    @property
    def cache_percentage(self) -> float:
        if self.total_books == 0:
            return 0.0
        return self.books_with_external_id * 100 / self.total_books


@dataclass(frozen=True)
class MemoryCacheStats:
    """Snapshot of the in-process cache occupancy."""

    size: int
    max_size: int
    valid_entries: int = 0
    expired_entries: int = 0

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"size cannot be negative, got {self.size}")
        if self.max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {self.max_size}")

    @property
    def total_entries(self) -> int:
        return self.size

    @property
    def usage(self) -> float:
        """Occupancy as a percentage of max_size."""
        return self.size * 100 / self.max_size

    @property
    def usage_formatted(self) -> str:
        return f"{round(self.usage)}%"


@dataclass(frozen=True)
class CacheStats:
    """Combined statistics returned by BookLookupService.get_cache_stats()."""

    database: DatabaseCacheStats
    memory: MemoryCacheStats
