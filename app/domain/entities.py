"""
Domain entities for the book lookup service.

Book is the durable catalog record; BookSearchResult is the read model
handed back to callers. Text used for matching is stored lower-case and
only turned into a display form when a result is built.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, List


DEFAULT_LANGUAGE = "es"
"""Locale assigned to records the provider returns without a language"""


def capitalize_text(text: Optional[str]) -> Optional[str]:
    """
    Capitalize each space-separated word for display.

    "cien años de soledad" -> "Cien Años De Soledad"
    """
    if not text:
        return text
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


@dataclass
class Book:
    """
    Represents a book record in the catalog.

    Records coming from the external provider carry their display casing
    and no `id`; the catalog assigns `id` and `created_at` when the record
    is persisted in its storage form (see normalized_for_storage()).
    """

    title: str
    """Book title (lower-case once stored)"""

    authors: List[str]
    """Ordered list of author names (lower-case once stored)"""

    external_id: Optional[str] = None
    """Volume ID in the external provider, unique when present"""

    description: Optional[str] = None
    """Book description/summary (lower-case once stored)"""

    isbn: Optional[str] = None
    """ISBN-13 when available, ISBN-10 otherwise"""

    publisher: Optional[str] = None
    """Publisher name"""

    published_date: Optional[str] = None
    """Publication date as returned by the provider (YYYY, YYYY-MM or YYYY-MM-DD)"""

    page_count: Optional[int] = None
    """Number of pages"""

    categories: List[str] = field(default_factory=list)
    """List of categories/genres"""

    image_url: Optional[str] = None
    """URL to the cover thumbnail"""

    language: Optional[str] = None
    """ISO 639-1 language code (e.g., 'es', 'en')"""

    id: Optional[int] = None
    """Store-assigned identifier, None until persisted"""

    created_at: Optional[datetime] = None
    """When this record was added to the catalog, used as recency tiebreak"""

    def __post_init__(self) -> None:
        """Validate book data."""
        if not self.title or not self.title.strip():
            raise ValueError("Book title cannot be empty")

        if self.page_count is not None and self.page_count < 0:
            raise ValueError(f"page_count cannot be negative, got {self.page_count}")

    def get_authors_text(self) -> str:
        """Authors joined with spaces, lower-cased for matching."""
        return " ".join(self.authors).lower()

    def normalized_for_storage(self) -> "Book":
        """
        Return the storage form of this record.

        Title, authors and description are lower-cased so that catalog
        matching is case-insensitive; a missing language falls back to
        DEFAULT_LANGUAGE.
        """
        return replace(
            self,
            title=self.title.lower(),
            authors=[author.lower() for author in self.authors],
            description=self.description.lower() if self.description else None,
            language=self.language or DEFAULT_LANGUAGE,
        )


@dataclass(frozen=True)
class BookSearchResult:
    """
    A book as returned to callers of the lookup service.

    `is_from_cache` marks provenance: True when the record was already in
    the catalog, False when it was fetched from the provider in this call.
    """

    id: Optional[int]
    external_id: Optional[str]
    title: str
    authors: List[str]
    description: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    page_count: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    language: str = DEFAULT_LANGUAGE
    is_from_cache: bool = False

    @staticmethod
    def from_book(book: Book, is_from_cache: bool) -> "BookSearchResult":
        """
        Project a catalog record into its display form.

        Args:
            book: Record read from the catalog (or fetched from the provider)
            is_from_cache: Whether the record was already stored before this call

        Returns:
            A new BookSearchResult with capitalized title, authors and description
        """
        return BookSearchResult(
            id=book.id,
            external_id=book.external_id,
            title=capitalize_text(book.title),
            authors=[capitalize_text(author) for author in book.authors],
            description=capitalize_text(book.description),
            isbn=book.isbn,
            publisher=book.publisher,
            published_date=book.published_date,
            page_count=book.page_count,
            categories=list(book.categories),
            image_url=book.image_url,
            language=book.language or DEFAULT_LANGUAGE,
            is_from_cache=is_from_cache,
        )
