"""
Book lookup service: resolves searches and by-id lookups through the
memory cache, the persistent catalog and the external provider.

Resolution order for a search:
1. memory cache (final result lists; 10 min TTL for merged pages,
   the cache default for pages the catalog fills on its own)
2. catalog full-text search, filtered for relevance
3. external provider, only when the catalog cannot fill the page
   - new records are persisted in one batch and read back from the catalog

Catalog and provider failures degrade the answer instead of failing it:
a provider outage yields catalog-only results, and any unexpected error
retries the catalog alone before giving up.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from app.domain.entities import Book, BookSearchResult
from app.domain.errors import (
    PersistenceError,
    ServiceUnavailableError,
    StoreUnavailableError,
    TransientProviderError,
)
from app.domain.ports import BookCache, BookCatalogRepository, ExternalBooksProvider
from app.domain.services.query_normalizer import build_precise_query, detect_language
from app.domain.services.relevance_filter import (
    deduplicate_by_external_id,
    filter_external_candidates,
    filter_stored_candidates,
    sort_by_language_preference,
)
from app.domain.value_objects import BookSearchQuery, CacheStats, DatabaseCacheStats


logger = logging.getLogger(__name__)

SEARCH_CACHE_TTL_SECONDS = 10 * 60
MIN_PROVIDER_QUERY_LENGTH = 3
STORE_OVERFETCH_FACTOR = 2


def new_query_id() -> str:
    return f"q-{uuid.uuid4().hex[:8]}"


class BookLookupService:
    """
    Three-tier book resolution with deduplication, relevance filtering and
    language-aware ranking.

    This service orchestrates:
    1. Memory cache lookups and stores
    2. Catalog full-text search (BookCatalogRepository)
    3. External provider search and fetch (ExternalBooksProvider)
    4. Bulk persistence of newly discovered books
    """

    def __init__(
        self,
        catalog_repo: BookCatalogRepository,
        external_provider: ExternalBooksProvider,
        cache: BookCache,
    ):
        """
        Initialize the lookup service with its dependencies.

        Args:
            catalog_repo: Persistent catalog
            external_provider: External book metadata source (Google Books)
            cache: Process-local TTL cache
        """
        self.catalog_repo = catalog_repo
        self.external_provider = external_provider
        self.cache = cache

    # =========================================================================
    # Search
    # =========================================================================

    def search_books(
        self,
        query: str,
        max_results: int = 10,
        language_hint: Optional[str] = None,
    ) -> List[BookSearchResult]:
        """
        Search books by free text.

        Args:
            query: Free-text query (title, author, or both)
            max_results: Page size, 1-20
            language_hint: Caller's preferred ISO 639-1 language, if any

        Returns:
            Up to `max_results` results; catalog records first unless the
            language preference reorders them

        Raises:
            ValueError: If the query is empty or max_results is out of range
            ServiceUnavailableError: If both the pipeline and the catalog-only
                fallback fail
        """
        search_query = BookSearchQuery(
            text=query,
            max_results=max_results,
            language_hint=language_hint,
        )
        query_id = new_query_id()
        cache_key = search_query.cache_key()

        cached = self.cache.get(cache_key)
        if cached is not None:
            self._log(query_id, logging.INFO, f"Memory cache hit for '{query}' ({len(cached)} results)")
            return list(cached)

        self._log(query_id, logging.INFO, f"Searching for '{query}' (max {max_results}, lang {search_query.language_hint or 'auto'})")

        try:
            results, ttl = self._resolve(search_query, query_id)
        except Exception as e:
            self._log(query_id, logging.ERROR, f"Search pipeline failed, falling back to catalog only: {e}")
            try:
                return self._search_catalog(search_query, query_id)
            except Exception as fallback_error:
                self._log(query_id, logging.ERROR, f"Catalog fallback also failed: {fallback_error}")
                raise ServiceUnavailableError("Book search service temporarily unavailable") from fallback_error

        self.cache.set(cache_key, results, ttl=ttl)
        return list(results)

    def _resolve(
        self, search_query: BookSearchQuery, query_id: str
    ) -> Tuple[List[BookSearchResult], Optional[float]]:
        """
        Catalog, then provider, then merge.

        Returns the final ranked page and the TTL to cache it with. A page
        filled by the catalog alone keeps the cache default (None).
        """
        max_results = search_query.max_results

        stored = self._search_catalog(search_query, query_id)
        self._log(query_id, logging.INFO, f"Catalog returned {len(stored)} results")

        if len(stored) >= max_results:
            return stored, None

        candidates = self._search_provider(search_query, query_id)

        # Provider pages can repeat a volume; skip ids already taken
        seen = {result.external_id for result in stored if result.external_id}
        new_books = []
        for book in candidates:
            if book.external_id in seen:
                continue
            if book.external_id:
                seen.add(book.external_id)
            new_books.append(book)
        new_books = new_books[: max_results - len(stored)]

        new_results = self._persist_new_books(new_books, query_id)

        merged = deduplicate_by_external_id(stored + new_results)
        ranked = sort_by_language_preference(merged, search_query.language_hint)
        final = ranked[:max_results]

        self._log(
            query_id,
            logging.INFO,
            f"Returning {len(final)} results ({len(stored)} from catalog, {len(new_results)} new)",
        )
        return final, SEARCH_CACHE_TTL_SECONDS

    def _search_catalog(self, search_query: BookSearchQuery, query_id: str) -> List[BookSearchResult]:
        expression = build_precise_query(search_query.text)
        records = self.catalog_repo.find_by_full_text(
            expression,
            search_query.max_results * STORE_OVERFETCH_FACTOR,
        )
        relevant = filter_stored_candidates(records, search_query.text, query_id)
        return [
            BookSearchResult.from_book(book, is_from_cache=True)
            for book in relevant[: search_query.max_results]
        ]

    def _search_provider(self, search_query: BookSearchQuery, query_id: str) -> List[Book]:
        """Query the provider; any failure yields no candidates."""
        if len(search_query.text) < MIN_PROVIDER_QUERY_LENGTH:
            self._log(query_id, logging.INFO, "Query too short for provider search")
            return []

        language = search_query.language_hint or detect_language(search_query.text)
        expression = build_precise_query(search_query.text)

        try:
            candidates = self.external_provider.search_books(
                expression,
                max_results=search_query.max_results,
                language=language,
            )
        except Exception as e:
            self._log(query_id, logging.WARNING, f"Provider search failed, continuing without it: {e}")
            return []

        relevant = filter_external_candidates(
            candidates,
            search_query.text,
            language_hint=language,
            query_id=query_id,
        )
        self._log(
            query_id,
            logging.INFO,
            f"Provider returned {len(candidates)} candidates, {len(relevant)} relevant (lang {language})",
        )
        return relevant[: search_query.max_results]

    def _persist_new_books(self, books: List[Book], query_id: str) -> List[BookSearchResult]:
        """
        Store newly discovered books and return them as read back from the catalog.

        The batch insert is tried first; if it fails, each book is upserted
        on its own and failures are skipped.
        """
        books = [book for book in books if book.external_id]
        if not books:
            return []

        storage_forms = [book.normalized_for_storage() for book in books]

        try:
            inserted = self.catalog_repo.save_many_ignoring_duplicates(storage_forms)
            self._log(query_id, logging.INFO, f"Persisted {inserted}/{len(storage_forms)} new books")
            saved = self.catalog_repo.get_by_external_ids([book.external_id for book in storage_forms])
        except (PersistenceError, StoreUnavailableError) as e:
            self._log(query_id, logging.WARNING, f"Batch persistence failed, saving one by one: {e}")
            saved = []
            for book in storage_forms:
                try:
                    saved.append(self.catalog_repo.upsert_by_external_id(book.external_id, book))
                except PersistenceError as record_error:
                    self._log(
                        query_id,
                        logging.ERROR,
                        f"Could not save book {book.external_id}: {record_error}",
                    )

        return [BookSearchResult.from_book(book, is_from_cache=False) for book in saved]

    # =========================================================================
    # Lookup by external id
    # =========================================================================

    def get_book_by_external_id(self, external_id: str) -> Optional[BookSearchResult]:
        """
        Fetch one book by its provider identifier.

        Returns:
            The book, or None if the provider reports it does not exist

        Raises:
            ValueError: If external_id is empty
            TransientProviderError: If the book is not in the catalog and the
                provider keeps failing
            ServiceUnavailableError: If both the catalog and the provider fail
        """
        if not external_id or not external_id.strip():
            raise ValueError("external_id cannot be empty")

        cache_key = f"book:{external_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        store_failed = False
        try:
            stored = self.catalog_repo.get_by_external_id(external_id)
        except StoreUnavailableError as e:
            logger.error(f"Catalog lookup for {external_id} failed: {e}")
            stored = None
            store_failed = True

        if stored is not None:
            result = BookSearchResult.from_book(stored, is_from_cache=True)
            self.cache.set(cache_key, result)
            return result

        try:
            fetched = self.external_provider.get_book_by_id(external_id)
        except TransientProviderError as e:
            if store_failed:
                raise ServiceUnavailableError("Book lookup service temporarily unavailable") from e
            raise

        if fetched is None:
            return None

        storage_form = fetched.normalized_for_storage()
        try:
            saved = self.catalog_repo.upsert_by_external_id(external_id, storage_form)
        except PersistenceError as e:
            logger.error(f"Could not save book {external_id}, returning it unsaved: {e}")
            return BookSearchResult.from_book(storage_form, is_from_cache=False)

        result = BookSearchResult.from_book(saved, is_from_cache=False)
        self.cache.set(cache_key, result)
        return result

    # =========================================================================
    # Maintenance
    # =========================================================================

    def get_cache_stats(self) -> CacheStats:
        """Catalog totals plus memory cache occupancy."""
        database = DatabaseCacheStats(
            total_books=self.catalog_repo.count(),
            books_with_external_id=self.catalog_repo.count_with_external_id(),
        )
        return CacheStats(database=database, memory=self.cache.get_detailed_stats())

    def clear_memory_cache(self) -> None:
        """Drop every memory cache entry. The catalog is untouched."""
        self.cache.clear()
        logger.info("Memory cache cleared")

    @staticmethod
    def _log(query_id: str, level: int, message: str) -> None:
        logger.log(level, f"[{query_id}] {message}", extra={"query_id": query_id})
