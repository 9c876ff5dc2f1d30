"""
Pydantic models for the Google Books volumes API.

Raw JSON is validated once here; the rest of the code only sees Book
entities produced by Volume.to_book().
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.entities import Book


UNKNOWN_TITLE = "Título no disponible"
UNKNOWN_AUTHOR = "Autor desconocido"


class GoogleBooksModel(BaseModel):
    """Base model: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class IndustryIdentifier(GoogleBooksModel):
    type: str = ""
    identifier: str = ""


class ImageLinks(GoogleBooksModel):
    thumbnail: Optional[str] = None
    small_thumbnail: Optional[str] = Field(default=None, alias="smallThumbnail")


class VolumeInfo(GoogleBooksModel):
    title: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = Field(default=None, alias="publishedDate")
    industry_identifiers: List[IndustryIdentifier] = Field(
        default_factory=list, alias="industryIdentifiers"
    )
    page_count: Optional[int] = Field(default=None, alias="pageCount", ge=0)
    categories: List[str] = Field(default_factory=list)
    image_links: Optional[ImageLinks] = Field(default=None, alias="imageLinks")
    language: Optional[str] = None

    def get_isbn(self) -> Optional[str]:
        """First ISBN_13 or ISBN_10 identifier, in the order the API lists them."""
        for identifier in self.industry_identifiers:
            if identifier.type in ("ISBN_13", "ISBN_10") and identifier.identifier:
                return identifier.identifier
        return None

    def get_image_url(self) -> Optional[str]:
        if self.image_links is None:
            return None
        return self.image_links.thumbnail or self.image_links.small_thumbnail


class Volume(GoogleBooksModel):
    """A single item of a volumes response, or the body of GET /volumes/{id}."""

    id: str = Field(min_length=1)
    volume_info: VolumeInfo = Field(default_factory=VolumeInfo, alias="volumeInfo")

    def to_book(self) -> Book:
        """
        Map this volume to a Book in display casing.

        Missing title and authors get placeholder values so every volume the
        provider returns can be stored.
        """
        info = self.volume_info
        return Book(
            external_id=self.id,
            title=(info.title or "").strip() or UNKNOWN_TITLE,
            authors=info.authors or [UNKNOWN_AUTHOR],
            description=info.description,
            isbn=info.get_isbn(),
            publisher=info.publisher,
            published_date=info.published_date,
            page_count=info.page_count,
            categories=info.categories,
            image_url=info.get_image_url(),
            language=info.language,
        )


class VolumesResponse(GoogleBooksModel):
    """
    Envelope of GET /volumes.

    Items are kept raw so that one malformed volume does not invalidate
    the whole page; they are validated one by one by the client.
    """

    kind: Optional[str] = None
    total_items: int = Field(default=0, alias="totalItems")
    items: Optional[List[dict]] = None
