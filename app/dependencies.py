"""
Composition root: configuration from the environment and singleton wiring.

This module provides singleton instances of the catalog repository, the
Google Books client, the memory cache and the lookup service. Callers
(request handlers, scripts) obtain the service through get_book_lookup_service().

Note: We use module-level singletons so that every worker thread shares the
same memory cache.
"""

import os
from pathlib import Path
from typing import Optional

from app.domain.ports import BookCache, BookCatalogRepository, ExternalBooksProvider
from app.domain.services import BookLookupService
from app.infrastructure.cache.memory_cache import MemoryCache
from app.infrastructure.db.sqlite_book_catalog_repository import SqliteBookCatalogRepository
from app.infrastructure.external.google_books_client import GoogleBooksClient

# Configuration from environment
DB_PATH = Path(os.getenv("DB_PATH", "data/catalog.db"))
GOOGLE_BOOKS_API_KEY = os.getenv("GOOGLE_BOOKS_API_KEY") or None
MEMORY_CACHE_MAX_ENTRIES = int(os.getenv("MEMORY_CACHE_MAX_ENTRIES", "1000"))
MEMORY_CACHE_TTL_SECONDS = float(os.getenv("MEMORY_CACHE_TTL_SECONDS", "900"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Module-level singletons (initialized lazily)
_catalog_repository: Optional[BookCatalogRepository] = None
_external_provider: Optional[ExternalBooksProvider] = None
_memory_cache: Optional[BookCache] = None
_book_lookup_service: Optional[BookLookupService] = None


def get_catalog_repository() -> BookCatalogRepository:
    """Provide a singleton instance of the catalog repository."""
    global _catalog_repository
    if _catalog_repository is None:
        _catalog_repository = SqliteBookCatalogRepository(DB_PATH)
    return _catalog_repository


def get_external_provider() -> ExternalBooksProvider:
    """Provide a singleton instance of the Google Books client."""
    global _external_provider
    if _external_provider is None:
        _external_provider = GoogleBooksClient(api_key=GOOGLE_BOOKS_API_KEY)
    return _external_provider


def get_memory_cache() -> BookCache:
    """Provide a singleton instance of the memory cache."""
    global _memory_cache
    if _memory_cache is None:
        _memory_cache = MemoryCache(
            max_entries=MEMORY_CACHE_MAX_ENTRIES,
            default_ttl=MEMORY_CACHE_TTL_SECONDS,
        )
    return _memory_cache


def get_book_lookup_service() -> BookLookupService:
    """Provide the Book Lookup Service with all dependencies wired."""
    global _book_lookup_service
    if _book_lookup_service is None:
        _book_lookup_service = BookLookupService(
            catalog_repo=get_catalog_repository(),
            external_provider=get_external_provider(),
            cache=get_memory_cache(),
        )
    return _book_lookup_service


def reset_dependencies() -> None:
    """
    Reset all singletons. Useful for testing.

    This allows tests to inject mock dependencies by resetting
    the module state between test cases.
    """
    global _catalog_repository, _external_provider, _memory_cache, _book_lookup_service

    _catalog_repository = None
    _external_provider = None
    _memory_cache = None
    _book_lookup_service = None
