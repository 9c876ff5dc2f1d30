"""
SQLite implementation of the BookCatalogRepository port.

This adapter persists Book entities to a SQLite database, handling
serialization/deserialization and enforcing the unique constraint on external_id.

Full-text lookups go through an FTS5 index (`books_fts`) kept in sync with
the `books` table by triggers. When the index is missing (SQLite built
without FTS5, or dropped by scripts/init_database.py --drop-full-text) or a
MATCH expression is rejected, lookups degrade to a LIKE scan.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import ValidationError

from app.domain.entities import Book
from app.domain.errors import PersistenceError, StoreUnavailableError
from app.domain.ports import BookCatalogRepository
from app.infrastructure.db.book_row import BookRow


logger = logging.getLogger(__name__)

FTS_TABLE = "books_fts"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT UNIQUE,
    title TEXT NOT NULL,
    authors TEXT NOT NULL,
    description TEXT,
    isbn TEXT,
    publisher TEXT,
    published_date TEXT,
    page_count INTEGER,
    categories TEXT,
    image_url TEXT,
    language TEXT NOT NULL DEFAULT 'es',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_books_title ON books(title);
CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at);
"""

_FTS_SCHEMA = f"""
CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
    title, authors, description, content='books', content_rowid='id'
);
CREATE TRIGGER IF NOT EXISTS books_fts_ai AFTER INSERT ON books BEGIN
    INSERT INTO {FTS_TABLE}(rowid, title, authors, description)
    VALUES (new.id, new.title, new.authors, new.description);
END;
CREATE TRIGGER IF NOT EXISTS books_fts_ad AFTER DELETE ON books BEGIN
    INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, authors, description)
    VALUES ('delete', old.id, old.title, old.authors, old.description);
END;
CREATE TRIGGER IF NOT EXISTS books_fts_au AFTER UPDATE ON books BEGIN
    INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, authors, description)
    VALUES ('delete', old.id, old.title, old.authors, old.description);
    INSERT INTO {FTS_TABLE}(rowid, title, authors, description)
    VALUES (new.id, new.title, new.authors, new.description);
END;
"""

_DROP_FTS = f"""
DROP TRIGGER IF EXISTS books_fts_ai;
DROP TRIGGER IF EXISTS books_fts_ad;
DROP TRIGGER IF EXISTS books_fts_au;
DROP TABLE IF EXISTS {FTS_TABLE};
"""

_COLUMNS = (
    "external_id, title, authors, description, isbn, publisher, published_date, "
    "page_count, categories, image_url, language, created_at, updated_at"
)
_PLACEHOLDERS = (
    ":external_id, :title, :authors, :description, :isbn, :publisher, :published_date, "
    ":page_count, :categories, :image_url, :language, :created_at, :updated_at"
)


def _quote_term(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


def to_fts_query(expression: str) -> str:
    """
    Translate a boolean-mode search expression into FTS5 query syntax.

    Examples:
        '"harry potter y la piedra"' -> '"harry potter y la piedra"'
        '+jane +austen'              -> '"jane" AND "austen"'
        'dune messiah'               -> '"dune" OR "messiah"'
    """
    expression = expression.strip()

    if len(expression) >= 2 and expression.startswith('"') and expression.endswith('"'):
        return _quote_term(expression[1:-1].strip())

    terms = expression.split()
    if terms and all(term.startswith("+") for term in terms):
        return " AND ".join(_quote_term(term[1:]) for term in terms if term[1:])

    return " OR ".join(_quote_term(term.lstrip("+")) for term in terms if term.lstrip("+"))


def expression_to_phrase(expression: str) -> str:
    """Strip boolean-mode operators, leaving the lower-cased words of the expression."""
    words = expression.replace('"', " ").split()
    return " ".join(word.lstrip("+") for word in words if word.lstrip("+")).lower()


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteBookCatalogRepository(BookCatalogRepository):
    """
    The unique constraint on external_id is enforced for records where it is non-null.
    Books without external_id are treated as non-deduplicable at the catalog level
    (multiple entries may exist).
    """

    def __init__(self, db_path: Path, enable_full_text: bool = True) -> None:
        """
        Initialize the repository with a database path.

        Args:
            db_path: SQLite file; parent directories are created if needed
            enable_full_text: Create the FTS5 index and its triggers on startup
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        if enable_full_text:
            self.add_full_text_index()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a short-lived connection with row factory, committing on success."""
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row # Needed to access by name column and not a number
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Create the books table if it doesn't exist."""
        try:
            with self._get_connection() as conn:
                conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Could not initialize catalog at {self._db_path}: {e}") from e

    # =========================================================================
    # Full-text index management
    # =========================================================================

    def has_full_text_index(self) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (FTS_TABLE,),
            ).fetchone()
            return row is not None

    def add_full_text_index(self) -> bool:
        """
        Create the FTS5 index and its sync triggers, indexing existing rows.

        Returns:
            True if the index exists afterwards, False if FTS5 is unavailable
        """
        if self.has_full_text_index():
            return True

        try:
            with self._get_connection() as conn:
                conn.executescript(_FTS_SCHEMA)
                conn.execute(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('rebuild')")
        except sqlite3.OperationalError as e:
            logger.warning("Full-text index not available, using LIKE search: %s", e)
            return False

        logger.info("Full-text index %s created", FTS_TABLE)
        return True

    def drop_full_text_index(self) -> bool:
        """
        Remove the FTS5 index and its triggers.

        Returns:
            True if an index was dropped, False if there was none
        """
        existed = self.has_full_text_index()
        with self._get_connection() as conn:
            conn.executescript(_DROP_FTS)

        if existed:
            logger.info("Full-text index %s dropped", FTS_TABLE)
        return existed

    # =========================================================================
    # Row conversion
    # =========================================================================

    def _book_to_row(self, book: Book, now: str) -> dict:
        """Convert a Book entity to a database row dict."""
        return {
            "external_id": book.external_id,
            "title": book.title,
            "authors": json.dumps(book.authors, ensure_ascii=False),
            "description": book.description,
            "isbn": book.isbn,
            "publisher": book.publisher,
            "published_date": book.published_date,
            "page_count": book.page_count,
            "categories": json.dumps(book.categories or [], ensure_ascii=False),
            "image_url": book.image_url,
            "language": book.language or "es",
            "created_at": now,
            "updated_at": now,
        }

    def _rows_to_books(self, rows: List[sqlite3.Row]) -> List[Book]:
        """Decode rows, skipping (and logging) any that fail validation."""
        books = []
        for row in rows:
            try:
                books.append(BookRow.from_sqlite(row).to_book())
            except (ValidationError, ValueError) as e:
                logger.error("Skipping corrupt catalog row id=%s: %s", row["id"], e)
        return books

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_full_text(self, expression: str, limit: int) -> List[Book]:
        """
        Find records matching a boolean-mode expression, most recent first.

        Raises:
            StoreUnavailableError: If neither the index nor the LIKE scan can run
        """
        if not expression or not expression.strip() or limit < 1:
            return []

        try:
            use_full_text = self.has_full_text_index()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog search failed: {e}") from e

        if use_full_text:
            try:
                with self._get_connection() as conn:
                    rows = conn.execute(
                        f"""
                        SELECT * FROM books
                        WHERE id IN (SELECT rowid FROM {FTS_TABLE} WHERE {FTS_TABLE} MATCH ?)
                        ORDER BY created_at DESC, id DESC
                        LIMIT ?
                        """,
                        (to_fts_query(expression), limit),
                    ).fetchall()
                return self._rows_to_books(rows)
            except sqlite3.OperationalError as e:
                logger.warning("Full-text search failed, falling back to LIKE search: %s", e)

        try:
            return self._find_by_like(expression, limit)
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog search failed: {e}") from e

    def _find_by_like(self, expression: str, limit: int) -> List[Book]:
        """
        Substring scan: titles containing the whole phrase first, then
        records whose title or authors contain any word longer than 2 chars.
        """
        phrase = expression_to_phrase(expression)
        if not phrase:
            return []

        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM books WHERE title LIKE ? ESCAPE '\\'
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (f"%{_escape_like(phrase)}%", limit),
            ).fetchall()

            words = [word for word in phrase.split() if len(word) > 2]
            if len(rows) < limit and words:
                conditions = " OR ".join(
                    ["title LIKE ? ESCAPE '\\'"] * len(words)
                    + ["authors LIKE ? ESCAPE '\\'"] * len(words)
                )
                patterns = [f"%{_escape_like(word)}%" for word in words] * 2
                seen = {row["id"] for row in rows}
                word_rows = conn.execute(
                    f"""
                    SELECT * FROM books WHERE {conditions}
                    ORDER BY created_at DESC, id DESC LIMIT ?
                    """,
                    (*patterns, limit),
                ).fetchall()
                rows = rows + [row for row in word_rows if row["id"] not in seen]

        return self._rows_to_books(rows[:limit])

    def get_by_external_id(self, external_id: str) -> Optional[Book]:
        """Retrieve a book by its external provider identifier."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM books WHERE external_id = ?",
                    (external_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog lookup failed: {e}") from e

        if row is None:
            return None

        books = self._rows_to_books([row])
        return books[0] if books else None

    def get_by_external_ids(self, external_ids: List[str]) -> List[Book]:
        """Retrieve the records for `external_ids`, in the order given."""
        if not external_ids:
            return []

        placeholders = ", ".join("?" * len(external_ids))
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    f"SELECT * FROM books WHERE external_id IN ({placeholders})",
                    list(external_ids),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog lookup failed: {e}") from e

        by_external_id = {book.external_id: book for book in self._rows_to_books(rows)}
        return [by_external_id[eid] for eid in external_ids if eid in by_external_id]

    def count(self) -> int:
        """Get the total number of books in the catalog."""
        try:
            with self._get_connection() as conn:
                result = conn.execute("SELECT COUNT(*) as cnt FROM books").fetchone()
                return result["cnt"]
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog count failed: {e}") from e

    def count_with_external_id(self) -> int:
        """Get the number of books discovered through the external provider."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    "SELECT COUNT(*) as cnt FROM books WHERE external_id IS NOT NULL"
                ).fetchone()
                return result["cnt"]
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Catalog count failed: {e}") from e

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert_by_external_id(self, external_id: str, book: Book) -> Book:
        """Insert the book, or update the record that already has this external_id."""
        row = self._book_to_row(book, self._now())
        row["external_id"] = external_id

        try:
            with self._get_connection() as conn:
                conn.execute(f"""
                    INSERT INTO books ({_COLUMNS})
                    VALUES ({_PLACEHOLDERS})
                    ON CONFLICT(external_id) DO UPDATE SET
                        title=excluded.title,
                        authors=excluded.authors,
                        description=excluded.description,
                        isbn=excluded.isbn,
                        publisher=excluded.publisher,
                        published_date=excluded.published_date,
                        page_count=excluded.page_count,
                        categories=excluded.categories,
                        image_url=excluded.image_url,
                        language=excluded.language,
                        updated_at=excluded.updated_at
                """, row)
                stored = conn.execute(
                    "SELECT * FROM books WHERE external_id = ?",
                    (external_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error while saving book {external_id}: {e}") from e

        books = self._rows_to_books([stored])
        if not books:
            raise PersistenceError(f"Book {external_id} could not be read back after saving")
        return books[0]

    def save_many_ignoring_duplicates(self, books: List[Book]) -> int:
        """Save multiple books in a single transaction, skipping known external_ids."""
        if not books:
            return 0

        now = self._now()
        rows = [self._book_to_row(book, now) for book in books]

        try:
            with self._get_connection() as conn:
                cursor = conn.executemany(
                    f"INSERT OR IGNORE INTO books ({_COLUMNS}) VALUES ({_PLACEHOLDERS})",
                    rows,
                )
                inserted = cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error while saving books: {e}") from e

        logger.info("Catalog batch insert: %s/%s books inserted", inserted, len(books))
        return inserted
