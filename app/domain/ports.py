"""
Port interfaces (protocols) for the domain layer.

Ports define the contracts between the domain and infrastructure layers.
They are implemented by adapters in the infrastructure layer, allowing
the domain to remain independent of technical details.

Following Hexagonal Architecture principles, the domain layer depends only
on these abstract protocols, never on concrete implementations.
"""

from typing import Protocol, List, Optional, Any

from .entities import Book
from .value_objects import MemoryCacheStats


class BookCatalogRepository(Protocol):
    """
    Port for the persistent book catalog.

    The catalog is the durable source of truth. Records are keyed by a
    store-assigned `id` and, when present, a unique `external_id`.

    Implementations should handle:
    - Unique constraint on external_id to avoid duplicates
    - A full-text lookup that degrades to a substring scan when no
      full-text index is available
    - Efficient batch inserts for records discovered during a search
    """

    def find_by_full_text(self, expression: str, limit: int) -> List[Book]:
        """
        Find records matching a boolean-mode search expression.

        The expression uses `"exact phrase"` and `+required` syntax as
        produced by build_precise_query(). Results are ordered by recency.

        Args:
            expression: Search expression
            limit: Maximum number of records to return

        Returns:
            Matching records, most recent first

        Raises:
            StoreUnavailableError: If the catalog cannot be queried at all
        """
        ...

    def get_by_external_id(self, external_id: str) -> Optional[Book]:
        """
        Retrieve a record by its external provider identifier.

        Returns:
            The Book if found, None otherwise

        Raises:
            StoreUnavailableError: If the catalog cannot be queried
        """
        ...

    def get_by_external_ids(self, external_ids: List[str]) -> List[Book]:
        """
        Retrieve every record whose external_id is in `external_ids`.

        Used to read back rows after save_many_ignoring_duplicates(), which
        does not return them. Records come back in the order of the ids.
        """
        ...

    def upsert_by_external_id(self, external_id: str, book: Book) -> Book:
        """
        Insert the record, or update the existing one with the same external_id.

        Returns:
            The stored record, with `id` and `created_at` populated

        Raises:
            PersistenceError: If the write fails
        """
        ...

    def save_many_ignoring_duplicates(self, books: List[Book]) -> int:
        """
        Insert records in one batch, silently skipping external_id duplicates.

        Returns:
            Number of records actually inserted

        Raises:
            PersistenceError: If the batch fails
        """
        ...

    def count(self) -> int:
        """Total number of records in the catalog."""
        ...

    def count_with_external_id(self) -> int:
        """Number of records that carry an external_id."""
        ...


class ExternalBooksProvider(Protocol):
    """
    Port for fetching book metadata from an external catalog (e.g., Google Books).

    Implementations own their timeout and retry policy. Returned books are
    in display casing, without a store-assigned id.
    """

    def search_books(
        self,
        query: str,
        max_results: int = 10,
        language: Optional[str] = None,
    ) -> List[Book]:
        """
        Search the external catalog.

        Args:
            query: Search expression
            max_results: Number of results the caller needs; implementations
                may over-fetch to leave room for relevance filtering
            language: Optional ISO 639-1 language restriction

        Returns:
            Candidate books in provider relevance order

        Raises:
            ValueError: If query is empty
            TransientProviderError: If the provider keeps failing after retries
        """
        ...

    def get_book_by_id(self, external_id: str) -> Optional[Book]:
        """
        Fetch a single book by its provider identifier.

        Returns:
            The Book if found, None if the provider reports it does not exist

        Raises:
            TransientProviderError: If the provider keeps failing after retries
        """
        ...


class BookCache(Protocol):
    """
    Port for the process-local key/value cache with per-entry TTL.
    """

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired entry."""
        ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value for `ttl` seconds (cache default when None)."""
        ...

    def has(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self) -> None:
        ...

    def get_detailed_stats(self) -> MemoryCacheStats:
        ...
