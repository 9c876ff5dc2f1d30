"""
Google Books API client implementing the ExternalBooksProvider port.

=============================================================================
NOTES: Retry policy
=============================================================================

The two endpoints have different budgets:

- search:  3 attempts, exponential backoff 1s, 2s; timeout 12s, 14s, 16s
- by id:   2 attempts, linear backoff 0.5s;       timeout 9s, 10s

Any failure (connection error, timeout, HTTP error, unparsable body) is
retried, except a 404 on the by-id endpoint, which means the volume does
not exist and is reported as None straight away. When the budget is
exhausted a TransientProviderError is raised; the lookup service decides
whether that is fatal.

=============================================================================
NOTES: Dependency Injection for Testability
=============================================================================

The constructor accepts an optional `session` and `sleep`:
- In production: requests.Session() and time.sleep
- In tests: a fake session returning canned responses and a no-op sleep

=============================================================================
"""

import logging
import time
from typing import Any, Callable, List, Optional

import requests
from pydantic import ValidationError

from app.domain.entities import Book
from app.domain.errors import TransientProviderError
from app.domain.ports import ExternalBooksProvider
from app.infrastructure.external.google_books_models import Volume, VolumesResponse


logger = logging.getLogger(__name__)


class GoogleBooksClient(ExternalBooksProvider):
    """
    Google Books API client for fetching book data.

    Usage:
        # Production
        client = GoogleBooksClient(api_key="your-api-key")
        books = client.search_books('"cien años de soledad"', max_results=10, language="es")

        # Testing (with fake session, no real delays)
        client = GoogleBooksClient(session=fake_session, sleep=lambda _: None)
    """

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    MAX_RESULTS_LIMIT = 40  # API limit per request
    SEARCH_MAX_ATTEMPTS = 3
    SEARCH_BASE_TIMEOUT_S = 10.0
    FETCH_MAX_ATTEMPTS = 2
    FETCH_BASE_TIMEOUT_S = 8.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[Any] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the Google Books client.

        Args:
            api_key: Optional Google API key for higher rate limits.
                    Without a key, requests are limited but still work.
            session: Optional HTTP session for dependency injection.
                    If None, creates a new requests.Session().
            sleep: Function used to wait between attempts.
        """
        self._api_key = api_key
        self._sleep = sleep
        if session is None:
            session = requests.Session()
            session.headers.update({
                "User-Agent": "BookLookupService/1.0",
                "Accept": "application/json",
            })
        self._session = session

    def search_books(
        self,
        query: str,
        max_results: int = 10,
        language: Optional[str] = None,
    ) -> List[Book]:
        """
        Search for books in Google Books API.

        Twice `max_results` volumes are requested (capped at 40) so that
        relevance filtering downstream still leaves enough candidates.

        Args:
            query: Search expression (see build_precise_query())
            max_results: Number of books the caller needs
            language: Optional language restriction (ISO 639-1 code)

        Returns:
            Book entities in provider relevance order

        Raises:
            ValueError: If query is empty or blank
            TransientProviderError: If all attempts fail
        """
        if not query or not query.strip():
            raise ValueError("query cannot be empty")

        params = {
            "q": query.strip(),
            "maxResults": min(max_results * 2, self.MAX_RESULTS_LIMIT),
            "orderBy": "relevance",
            "printType": "books",
        }

        if language:
            params["langRestrict"] = language

        if self._api_key:
            params["key"] = self._api_key

        logger.info(
            "Google Books search: q=%r, lang=%s, maxResults=%s",
            params["q"],
            language,
            params["maxResults"],
        )

        for attempt in range(1, self.SEARCH_MAX_ATTEMPTS + 1):
            try:
                response = self._session.get(
                    self.BASE_URL,
                    params=params,
                    timeout=self.SEARCH_BASE_TIMEOUT_S + attempt * 2,
                )
                response.raise_for_status()
                payload = VolumesResponse.model_validate(response.json())
                break
            except Exception as e:
                if attempt == self.SEARCH_MAX_ATTEMPTS:
                    logger.error(
                        "Google Books API failed after %s attempts: %s",
                        self.SEARCH_MAX_ATTEMPTS,
                        e,
                    )
                    raise TransientProviderError(f"Google Books API request failed: {e}") from e

                delay_s = 2 ** (attempt - 1)
                logger.warning(
                    "Google Books API attempt %s failed (%s), retrying in %ss...",
                    attempt,
                    type(e).__name__,
                    delay_s,
                )
                self._sleep(delay_s)

        books = []
        for item in payload.items or []:
            book = self._parse_volume_to_book(item)
            if book is not None:
                books.append(book)

        logger.info("Google Books API: %s raw results, %s parsed", len(payload.items or []), len(books))
        return books

    def get_book_by_id(self, external_id: str) -> Optional[Book]:
        """
        Fetch a specific book by its Google volume ID.

        Args:
            external_id: Google Books volume ID

        Returns:
            Book entity if found, None if Google reports 404 or the ID is blank

        Raises:
            TransientProviderError: If all attempts fail
        """
        if not external_id or not external_id.strip():
            return None

        url = f"{self.BASE_URL}/{external_id.strip()}"
        params = {}

        if self._api_key:
            params["key"] = self._api_key

        for attempt in range(1, self.FETCH_MAX_ATTEMPTS + 1):
            try:
                response = self._session.get(
                    url,
                    params=params,
                    timeout=self.FETCH_BASE_TIMEOUT_S + attempt,
                )

                # 404 means book not found - return None
                if response.status_code == 404:
                    logger.info("Google Books volume %s not found", external_id)
                    return None

                response.raise_for_status()
                data = response.json()
                break
            except Exception as e:
                if attempt == self.FETCH_MAX_ATTEMPTS:
                    raise TransientProviderError(f"Google Books API request failed: {e}") from e

                delay_s = attempt * 0.5
                logger.warning(
                    "Google Books fetch of %s failed (%s), retrying in %ss...",
                    external_id,
                    type(e).__name__,
                    delay_s,
                )
                self._sleep(delay_s)

        return self._parse_volume_to_book(data)

    # =========================================================================
    # Private helper methods
    # =========================================================================

    def _parse_volume_to_book(self, volume: Any) -> Optional[Book]:
        """
        Validate one raw volume and map it to a Book.

        Returns:
            Book entity, or None if the volume is malformed (e.g., no id)
        """
        try:
            return Volume.model_validate(volume).to_book()
        except (ValidationError, ValueError) as e:
            logger.warning("Skipping malformed Google Books volume: %s", e)
            return None
