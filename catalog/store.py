"""
RecordStore interface.

A RecordStore persists books and reviews. Implementations are passed
explicitly to the catalog service; nothing in the catalog reaches for a
process-wide handle.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import structlog

from .models import Book, BookData, Review, ReviewData
from .query import CatalogQuery

logger = structlog.get_logger(__name__)


class RecordStore(ABC):
    """Storage operations used by the catalog engine."""

    async def connect(self) -> None:
        """Open connections and prepare indexes."""

    async def disconnect(self) -> None:
        """Release connections."""

    # Books

    @abstractmethod
    async def find_books(self, query: CatalogQuery) -> List[Book]:
        """Return one page of books matching ``query`` in its order."""

    @abstractmethod
    async def count_books(self, query: CatalogQuery) -> int:
        """Count books matching the query filter, ignoring the page window."""

    @abstractmethod
    async def get_book(self, book_id: str) -> Optional[Book]:
        """Fetch a book; malformed ids behave as missing."""

    @abstractmethod
    async def get_books_by_ids(self, book_ids: Sequence[str]) -> List[Book]:
        """Fetch several books in one round-trip; missing ids are skipped."""

    @abstractmethod
    async def insert_book(self, data: BookData, owner_id: str) -> Book:
        """Persist a new book owned by ``owner_id``."""

    @abstractmethod
    async def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        """Apply ``changes`` and return the updated book, or None if it is gone."""

    @abstractmethod
    async def delete_book(self, book_id: str) -> bool:
        """Delete a book; False if it did not exist."""

    # Reviews

    @abstractmethod
    async def get_review(self, review_id: str) -> Optional[Review]:
        """Fetch a review; malformed ids behave as missing."""

    @abstractmethod
    async def find_reviews_for_book(self, book_id: str) -> List[Review]:
        """All reviews of a book, newest first."""

    @abstractmethod
    async def find_reviews_for_books(self, book_ids: Sequence[str]) -> List[Review]:
        """All reviews of several books in one round-trip."""

    @abstractmethod
    async def find_reviews_by_user(self, user_id: str) -> List[Review]:
        """All reviews written by a principal, newest first."""

    @abstractmethod
    async def find_review_by_user(self, book_id: str, user_id: str) -> Optional[Review]:
        """The review a principal wrote for a book, if any."""

    @abstractmethod
    async def insert_review(self, data: ReviewData, user_id: str) -> Review:
        """
        Persist a new review.

        Raises:
            DuplicateReviewError: If the principal already reviewed the book
        """

    @abstractmethod
    async def update_review(self, review_id: str, changes: Dict[str, Any]) -> Optional[Review]:
        """Apply ``changes`` and return the updated review, or None if it is gone."""

    @abstractmethod
    async def delete_review(self, review_id: str) -> bool:
        """Delete a review; False if it did not exist."""

    @abstractmethod
    async def delete_reviews_for_book(self, book_id: str) -> int:
        """Delete every review of a book and return how many were removed."""

    # Monitoring

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        """Record counts for monitoring."""

    async def health_check(self) -> Dict[str, Any]:
        """Report store health; implementations may probe their backend."""
        try:
            stats = await self.get_stats()
            return {"status": "healthy", **stats}
        except Exception as e:
            logger.error("Store health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


def create_store(settings) -> RecordStore:
    """
    Build the RecordStore selected by ``settings.store_backend``.

    Args:
        settings: CatalogConfig instance

    Returns:
        Unconnected RecordStore
    """
    if settings.store_backend == "memory":
        from .memory import InMemoryRecordStore
        return InMemoryRecordStore()

    from .database import MongoRecordStore
    return MongoRecordStore(
        connection_url=settings.mongodb_url,
        database_name=settings.mongodb_database,
        books_collection=settings.books_collection,
        reviews_collection=settings.reviews_collection
    )
