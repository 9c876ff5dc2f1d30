#!/usr/bin/env python3
"""
Book Search Script.

Runs the full lookup pipeline (memory cache, catalog, Google Books) from the
command line and prints the JSON the service would send to clients.

Usage:
    python -m scripts.search_books --query "Jane Austen" --limit 5 --lang es-ES
    python -m scripts.search_books --title "dune" --author "herbert"
    python -m scripts.search_books --id zyTCAlFPjgYC
    python -m scripts.search_books --stats
"""

import argparse
import json
import logging
import sys

from app.api.v1.converters import (
    domain_cache_stats_to_api,
    domain_results_to_api,
    domain_search_result_to_api,
)
from app.dependencies import LOG_LEVEL, get_book_lookup_service
from app.domain.errors import BookLookupError
from app.domain.services.query_normalizer import build_precise_query, detect_language
from app.domain.value_objects import BookSearchQuery

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def run_search(args: argparse.Namespace) -> str:
    query = BookSearchQuery.from_request(
        q=args.query,
        title=args.title,
        author=args.author,
        limit=args.limit,
        lang=args.lang,
    )
    logger.info(
        f"Normalized query: {build_precise_query(query.text)!r} "
        f"(detected language: {detect_language(query.text)})"
    )

    service = get_book_lookup_service()
    results = service.search_books(
        query.text,
        max_results=query.max_results,
        language_hint=query.language_hint,
    )
    return domain_results_to_api(query.text, results).model_dump_json(by_alias=True, indent=2)


def run_lookup(external_id: str) -> str:
    result = get_book_lookup_service().get_book_by_external_id(external_id)
    if result is None:
        return json.dumps({"error": f"Book {external_id} not found"})
    return domain_search_result_to_api(result).model_dump_json(by_alias=True, indent=2)


def run_stats() -> str:
    stats = get_book_lookup_service().get_cache_stats()
    return domain_cache_stats_to_api(stats).model_dump_json(by_alias=True, indent=2)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Search books through the lookup pipeline")
    parser.add_argument("--query", "-q", type=str, help="Free-text query")
    parser.add_argument("--title", type=str, help="Title part of the query")
    parser.add_argument("--author", type=str, help="Author part of the query")
    parser.add_argument("--limit", type=str, default=None, help="Max results (1-20, default 10)")
    parser.add_argument("--lang", type=str, default=None, help="Preferred language, e.g. 'es' or 'es-ES'")
    parser.add_argument("--id", dest="external_id", type=str, help="Look up one Google Books volume ID")
    parser.add_argument("--stats", action="store_true", help="Print catalog and memory cache statistics")

    args = parser.parse_args(argv)

    try:
        if args.stats:
            output = run_stats()
        elif args.external_id:
            output = run_lookup(args.external_id)
        else:
            output = run_search(args)
    except ValueError as e:
        parser.error(str(e))
    except BookLookupError as e:
        logger.error(f"Lookup failed: {e}")
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
