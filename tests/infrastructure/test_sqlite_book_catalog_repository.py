"""
Integration tests for SqliteBookCatalogRepository.

=============================================================================
NOTES: Real database, not mocks
=============================================================================

These tests use a REAL SQLite database file under pytest's tmp_path.
Full-text behavior depends on the SQLite build shipping FTS5; tests that
need it are skipped otherwise, and the LIKE fallback is tested with the
index disabled.

=============================================================================
Test Categories:
=============================================================================
1. Schema and full-text index management
2. Batch insert with duplicate skipping
3. Upsert by external_id
4. Full-text search and LIKE fallback
5. Error wrapping and corrupt rows

=============================================================================
"""

import sqlite3

import pytest

from app.domain.entities import Book
from app.domain.errors import PersistenceError, StoreUnavailableError
from app.infrastructure.db.sqlite_book_catalog_repository import (
    SqliteBookCatalogRepository,
    expression_to_phrase,
    to_fts_query,
)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalog.db"


@pytest.fixture
def repo(db_path) -> SqliteBookCatalogRepository:
    """Repository with the full-text index (when FTS5 is available)."""
    return SqliteBookCatalogRepository(db_path)


@pytest.fixture
def fts_repo(repo) -> SqliteBookCatalogRepository:
    if not repo.has_full_text_index():
        pytest.skip("SQLite build without FTS5")
    return repo


@pytest.fixture
def like_repo(tmp_path) -> SqliteBookCatalogRepository:
    """Repository without a full-text index: searches use LIKE."""
    return SqliteBookCatalogRepository(tmp_path / "like.db", enable_full_text=False)


def _make_book(
    external_id="vol1",
    title="dune",
    authors=None,
    description=None,
    language="en",
) -> Book:
    return Book(
        external_id=external_id,
        title=title,
        authors=authors or ["frank herbert"],
        description=description,
        language=language,
        categories=["fiction"],
        page_count=412,
    )


# -----------------------------------------------------------------------------
# Query translation
# -----------------------------------------------------------------------------


class TestExpressionTranslation:

    def test_phrase(self):
        assert to_fts_query('"harry potter y la piedra"') == '"harry potter y la piedra"'

    def test_required_terms(self):
        assert to_fts_query("+Jane +Austen") == '"Jane" AND "Austen"'

    def test_single_term(self):
        assert to_fts_query("Tolkien") == '"Tolkien"'

    def test_bare_terms_are_or(self):
        assert to_fts_query("dune messiah") == '"dune" OR "messiah"'

    def test_embedded_quotes_are_escaped(self):
        assert to_fts_query('"say "hi""') == '"say ""hi"""'

    def test_expression_to_phrase(self):
        assert expression_to_phrase("+Jane +Austen") == "jane austen"
        assert expression_to_phrase('"Harry Potter"') == "harry potter"


# -----------------------------------------------------------------------------
# Schema / index management
# -----------------------------------------------------------------------------


class TestSchema:

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "catalog.db"

        SqliteBookCatalogRepository(path, enable_full_text=False)

        assert path.exists()

    def test_empty_catalog_counts(self, repo):
        assert repo.count() == 0
        assert repo.count_with_external_id() == 0

    def test_without_full_text(self, like_repo):
        assert like_repo.has_full_text_index() is False

    def test_drop_and_add_full_text_index(self, fts_repo):
        fts_repo.save_many_ignoring_duplicates([_make_book()])

        assert fts_repo.drop_full_text_index() is True
        assert fts_repo.has_full_text_index() is False
        assert fts_repo.drop_full_text_index() is False

        assert fts_repo.add_full_text_index() is True
        # Existing rows are indexed on creation
        assert [b.external_id for b in fts_repo.find_by_full_text("dune", 10)] == ["vol1"]

    def test_reopening_existing_database(self, db_path):
        SqliteBookCatalogRepository(db_path).save_many_ignoring_duplicates([_make_book()])

        reopened = SqliteBookCatalogRepository(db_path)

        assert reopened.count() == 1


# -----------------------------------------------------------------------------
# Batch insert
# -----------------------------------------------------------------------------


class TestSaveManyIgnoringDuplicates:

    def test_inserts_and_returns_count(self, repo):
        books = [_make_book("a", "dune"), _make_book("b", "dune messiah")]

        assert repo.save_many_ignoring_duplicates(books) == 2
        assert repo.count() == 2

    def test_skips_existing_external_ids(self, repo):
        repo.save_many_ignoring_duplicates([_make_book("a")])

        inserted = repo.save_many_ignoring_duplicates([_make_book("a"), _make_book("b")])

        assert inserted == 1
        assert repo.count() == 2

    def test_empty_batch(self, repo):
        assert repo.save_many_ignoring_duplicates([]) == 0

    def test_books_without_external_id_are_not_deduplicated(self, repo):
        books = [_make_book(None, "untitled"), _make_book(None, "untitled")]

        assert repo.save_many_ignoring_duplicates(books) == 2
        assert repo.count_with_external_id() == 0

    def test_round_trip_fields(self, repo):
        book = Book(
            external_id="x1",
            title="cien años de soledad",
            authors=["gabriel garcía márquez"],
            description="macondo",
            isbn="9780307474728",
            publisher="Vintage",
            published_date="1967-05",
            page_count=417,
            categories=["Fiction", "Classics"],
            image_url="http://img",
            language="es",
        )
        repo.save_many_ignoring_duplicates([book])

        stored = repo.get_by_external_id("x1")

        assert stored.id is not None
        assert stored.created_at is not None
        assert stored.title == "cien años de soledad"
        assert stored.authors == ["gabriel garcía márquez"]
        assert stored.isbn == "9780307474728"
        assert stored.published_date == "1967-05"
        assert stored.page_count == 417
        assert stored.categories == ["Fiction", "Classics"]
        assert stored.language == "es"

    def test_missing_language_defaults_to_es(self, repo):
        repo.save_many_ignoring_duplicates([_make_book("a", language=None)])

        assert repo.get_by_external_id("a").language == "es"


class TestGetByExternalIds:

    def test_returns_in_requested_order(self, repo):
        repo.save_many_ignoring_duplicates([_make_book("a"), _make_book("b"), _make_book("c")])

        books = repo.get_by_external_ids(["c", "a", "missing", "b"])

        assert [b.external_id for b in books] == ["c", "a", "b"]

    def test_empty_ids(self, repo):
        assert repo.get_by_external_ids([]) == []

    def test_get_by_external_id_missing(self, repo):
        assert repo.get_by_external_id("nope") is None


# -----------------------------------------------------------------------------
# Upsert
# -----------------------------------------------------------------------------


class TestUpsertByExternalId:

    def test_inserts_new_record(self, repo):
        stored = repo.upsert_by_external_id("a", _make_book("a"))

        assert stored.id is not None
        assert stored.external_id == "a"
        assert repo.count() == 1

    def test_updates_existing_record_keeping_id(self, repo):
        first = repo.upsert_by_external_id("a", _make_book("a", title="dune"))

        second = repo.upsert_by_external_id("a", _make_book("a", title="dune (revised)"))

        assert second.id == first.id
        assert second.title == "dune (revised)"
        assert second.created_at == first.created_at
        assert repo.count() == 1

    def test_uses_given_external_id(self, repo):
        stored = repo.upsert_by_external_id("given", _make_book("other"))

        assert stored.external_id == "given"


# -----------------------------------------------------------------------------
# Full-text search
# -----------------------------------------------------------------------------


class TestFindByFullText:

    def test_phrase_match(self, fts_repo):
        fts_repo.save_many_ignoring_duplicates([
            _make_book("a", "harry potter y la piedra filosofal", ["j. k. rowling"]),
            _make_book("b", "la piedra lunar", ["wilkie collins"]),
        ])

        books = fts_repo.find_by_full_text('"harry potter y la piedra"', 10)

        assert [b.external_id for b in books] == ["a"]

    def test_required_terms_match_title_and_authors(self, fts_repo):
        fts_repo.save_many_ignoring_duplicates([
            _make_book("a", "pride and prejudice", ["jane austen"]),
            _make_book("b", "jane eyre", ["charlotte bronte"]),
        ])

        books = fts_repo.find_by_full_text("+Jane +Austen", 10)

        assert [b.external_id for b in books] == ["a"]

    def test_most_recent_first_and_limit(self, fts_repo):
        for i in range(5):
            fts_repo.upsert_by_external_id(f"v{i}", _make_book(f"v{i}", f"dune part {i}"))

        books = fts_repo.find_by_full_text("dune", 3)

        assert [b.external_id for b in books] == ["v4", "v3", "v2"]

    def test_updated_rows_are_reindexed(self, fts_repo):
        fts_repo.upsert_by_external_id("a", _make_book("a", "old title"))
        fts_repo.upsert_by_external_id("a", _make_book("a", "new title"))

        assert fts_repo.find_by_full_text("old", 10) == []
        assert len(fts_repo.find_by_full_text("new", 10)) == 1

    def test_blank_expression_returns_nothing(self, repo):
        assert repo.find_by_full_text("   ", 10) == []


class TestFindByLikeFallback:

    def test_title_phrase_match(self, like_repo):
        like_repo.save_many_ignoring_duplicates([
            _make_book("a", "harry potter y la piedra filosofal"),
            _make_book("b", "the hobbit", ["j. r. r. tolkien"]),
        ])

        books = like_repo.find_by_full_text('"Harry Potter y la Piedra"', 10)

        assert [b.external_id for b in books] == ["a"]

    def test_word_match_on_authors(self, like_repo):
        like_repo.save_many_ignoring_duplicates([
            _make_book("a", "pride and prejudice", ["jane austen"]),
            _make_book("b", "the hobbit", ["j. r. r. tolkien"]),
        ])

        books = like_repo.find_by_full_text("+Jane +Austen", 10)

        assert [b.external_id for b in books] == ["a"]

    def test_short_words_are_ignored(self, like_repo):
        like_repo.save_many_ignoring_duplicates([_make_book("a", "it", ["stephen king"])])

        assert like_repo.find_by_full_text("+of +la", 10) == []

    def test_like_wildcards_are_escaped(self, like_repo):
        like_repo.save_many_ignoring_duplicates([_make_book("a", "dune")])

        assert like_repo.find_by_full_text("%", 10) == []

    def test_stray_quote_is_tolerated(self, fts_repo):
        fts_repo.save_many_ignoring_duplicates([_make_book("a", "dune")])

        books = fts_repo.find_by_full_text('dune"', 10)

        assert [b.external_id for b in books] == ["a"]


# -----------------------------------------------------------------------------
# Errors and corrupt rows
# -----------------------------------------------------------------------------


class TestErrors:

    def test_corrupt_row_is_skipped(self, like_repo):
        like_repo.save_many_ignoring_duplicates([_make_book("good", "dune"), _make_book("bad", "dune 2")])
        conn = sqlite3.connect(str(like_repo._db_path))
        with conn:
            conn.execute("UPDATE books SET page_count = -1 WHERE external_id = 'bad'")
        conn.close()

        books = like_repo.find_by_full_text("dune", 10)

        assert [b.external_id for b in books] == ["good"]

    def test_read_failure_raises_store_unavailable(self, like_repo):
        conn = sqlite3.connect(str(like_repo._db_path))
        conn.execute("DROP TABLE books")
        conn.close()

        with pytest.raises(StoreUnavailableError):
            like_repo.get_by_external_id("a")

        with pytest.raises(StoreUnavailableError):
            like_repo.find_by_full_text("dune", 10)

    def test_write_failure_raises_persistence_error(self, like_repo):
        conn = sqlite3.connect(str(like_repo._db_path))
        conn.execute("DROP TABLE books")
        conn.close()

        with pytest.raises(PersistenceError):
            like_repo.save_many_ignoring_duplicates([_make_book("a")])

        with pytest.raises(PersistenceError):
            like_repo.upsert_by_external_id("a", _make_book("a"))
