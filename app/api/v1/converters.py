"""
Converters between domain entities/value objects and API schemas.

This module centralizes all conversion logic between the domain layer
and the API layer, maintaining clean separation of concerns.
"""

from dataclasses import asdict
from typing import List

from app.domain import entities as domain
from app.domain import value_objects as domain_vo
from app.api.v1 import schemas as api


def domain_search_result_to_api(result: domain.BookSearchResult) -> api.BookSearchResult:
    """
    Convert a domain BookSearchResult to an API BookSearchResult model.

    Args:
        result: Domain BookSearchResult

    Returns:
        API BookSearchResult model
    """
    return api.BookSearchResult(**asdict(result))


def domain_results_to_api(query: str, results: List[domain.BookSearchResult]) -> api.BookSearchResponse:
    return api.BookSearchResponse(
        query=query,
        count=len(results),
        results=[domain_search_result_to_api(r) for r in results],
    )


def domain_cache_stats_to_api(stats: domain_vo.CacheStats) -> api.CacheStats:
    """
    Convert domain CacheStats to the API CacheStats model.

    The catalog percentage is rounded to two decimals; memory usage is
    reported both raw and formatted ("42%").

    Args:
        stats: Domain CacheStats value object

    Returns:
        API CacheStats model
    """
    database = stats.database
    memory = stats.memory

    return api.CacheStats(
        database=api.DatabaseCacheStats(
            total_books=database.total_books,
            books_with_external_id=database.books_with_external_id,
            cache_percentage=round(database.cache_percentage, 2),
        ),
        memory=api.MemoryCacheStats(
            size=memory.size,
            max_size=memory.max_size,
            usage=memory.usage,
            usage_formatted=memory.usage_formatted,
            valid_entries=memory.valid_entries,
            expired_entries=memory.expired_entries,
            total_entries=memory.total_entries,
        ),
    )
