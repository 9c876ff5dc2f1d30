"""
Domain layer - Core business logic and entities.

This layer contains the business entities, value objects, errors, and defines
the ports (interfaces) that the infrastructure layer must implement.

It has NO dependencies on external frameworks, databases, or APIs.
"""

from .entities import Book, BookSearchResult
from .errors import (
    BookLookupError,
    PersistenceError,
    ServiceUnavailableError,
    StoreUnavailableError,
    TransientProviderError,
)
from .value_objects import BookSearchQuery, CacheStats, DatabaseCacheStats, MemoryCacheStats

__all__ = [
    # Entities
    "Book",
    "BookSearchResult",
    # Value Objects
    "BookSearchQuery",
    "CacheStats",
    "DatabaseCacheStats",
    "MemoryCacheStats",
    # Errors
    "BookLookupError",
    "PersistenceError",
    "ServiceUnavailableError",
    "StoreUnavailableError",
    "TransientProviderError",
]
