"""
Outbound shapes of the book lookup service.

Fields are snake_case in Python and camelCase on the wire; dump with
`model_dump(by_alias=True)` or `model_dump_json(by_alias=True)`.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookSearchResult(CamelModel):
    """
    API representation of a book returned by search or by-id lookup.
    """

    id: int | None = Field(default=None, description="Catalog identifier, None if not persisted")
    external_id: str | None = Field(default=None, description="Google Books volume ID")
    title: str = Field(description="Book title, capitalized for display")
    authors: list[str] = Field(description="List of author names")
    description: str | None = Field(default=None, description="Book description/summary")
    isbn: str | None = None
    publisher: str | None = None
    published_date: str | None = Field(default=None, description="YYYY, YYYY-MM or YYYY-MM-DD")
    page_count: int | None = Field(default=None, ge=0)
    categories: list[str] = Field(default_factory=list, description="List of categories/genres")
    image_url: str | None = Field(default=None, description="Cover thumbnail URL")
    language: str = Field(description="ISO 639-1 language code (e.g., 'es', 'en')")
    is_from_cache: bool = Field(description="True if the book was already in the catalog")


class DatabaseCacheStats(CamelModel):
    total_books: int = Field(ge=0)
    books_with_external_id: int = Field(ge=0)
    cache_percentage: float = Field(description="Share of the catalog discovered through Google Books")


class MemoryCacheStats(CamelModel):
    size: int = Field(ge=0)
    max_size: int = Field(ge=1)
    usage: float = Field(description="Occupancy as a percentage of max_size")
    usage_formatted: str = Field(description="Rounded occupancy, e.g. '42%'")
    valid_entries: int = Field(ge=0)
    expired_entries: int = Field(ge=0)
    total_entries: int = Field(ge=0)


class CacheStats(CamelModel):
    """
    Response of the cache statistics call.
    """

    database: DatabaseCacheStats
    memory: MemoryCacheStats


class BookSearchResponse(CamelModel):
    query: str
    count: int = Field(ge=0)
    results: list[BookSearchResult]
