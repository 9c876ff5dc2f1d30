#!/usr/bin/env python3
"""
Catalog Initialization Script.

This script creates the books table and its full-text index, then times a
few sample catalog searches so the effect of the index can be checked.

Usage:
    python -m scripts.init_database
    python -m scripts.init_database --db-path data/catalog.db --drop-full-text
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from app.dependencies import DB_PATH, LOG_LEVEL
from app.domain.errors import BookLookupError
from app.domain.services.query_normalizer import build_precise_query
from app.infrastructure.db.sqlite_book_catalog_repository import SqliteBookCatalogRepository

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SAMPLE_QUERIES = [
    "Harry Potter y la Piedra",
    "Jane Austen",
    "Tolkien",
    "cien años de soledad",
]


def time_sample_queries(repo: SqliteBookCatalogRepository, limit: int = 10) -> None:
    """Run each sample query against the catalog and log its latency."""
    for query in SAMPLE_QUERIES:
        expression = build_precise_query(query)
        start = time.perf_counter()
        books = repo.find_by_full_text(expression, limit)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{expression!r}: {len(books)} books in {elapsed_ms:.1f} ms")


def main(db_path: Path, drop_full_text: bool = False) -> int:
    """
    Main entry point for the initialization script.

    Args:
        db_path: SQLite catalog file
        drop_full_text: Remove the full-text index instead of creating it

    Returns:
        Number of books in the catalog
    """
    logger.info(f"Initializing catalog at {db_path}")

    try:
        repo = SqliteBookCatalogRepository(db_path, enable_full_text=not drop_full_text)

        if drop_full_text:
            if repo.drop_full_text_index():
                logger.info("Full-text index removed")
            else:
                logger.info("No full-text index to remove")
        elif not repo.has_full_text_index():
            logger.warning("FTS5 is not available in this SQLite build; searches will use LIKE")

        total = repo.count()
        logger.info(f"Catalog ready: {total} books, {repo.count_with_external_id()} from Google Books")

        if total > 0:
            time_sample_queries(repo)
        return total
    except BookLookupError as e:
        logger.error(f"Initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the book catalog and its full-text index")
    parser.add_argument(
        "--db-path",
        type=Path,
        default=DB_PATH,
        help=f"SQLite catalog path (default: {DB_PATH})"
    )
    parser.add_argument(
        "--drop-full-text",
        action="store_true",
        help="Remove the full-text index (searches fall back to LIKE)"
    )

    args = parser.parse_args()
    main(db_path=args.db_path, drop_full_text=args.drop_full_text)
