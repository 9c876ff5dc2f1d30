"""
Typed decoding of `books` table rows.

Rows are validated once at the adapter boundary; list columns are stored as
JSON text and decoded here.
"""

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from app.domain.entities import Book


class BookRow(BaseModel):
    """
    One row of the `books` table.
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    external_id: Optional[str] = None
    title: str
    authors: List[str]
    description: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    page_count: Optional[int] = None
    categories: List[str] = []
    image_url: Optional[str] = None
    language: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("authors", "categories", mode="before")
    @classmethod
    def decode_json_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            # JSON text column, or a legacy comma-separated value
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                return [part.strip() for part in value.split(",") if part.strip()]
            return decoded if isinstance(decoded, list) else [decoded]
        return value

    @classmethod
    def from_sqlite(cls, row: sqlite3.Row) -> "BookRow":
        return cls.model_validate(dict(row))

    def to_book(self) -> Book:
        return Book(
            id=self.id,
            external_id=self.external_id,
            title=self.title,
            authors=self.authors,
            description=self.description,
            isbn=self.isbn,
            publisher=self.publisher,
            published_date=self.published_date,
            page_count=self.page_count,
            categories=self.categories,
            image_url=self.image_url,
            language=self.language,
            created_at=self.created_at,
        )
