"""
In-process RecordStore.

Keeps books and reviews in insertion-ordered dictionaries. Used for local
development (STORE_BACKEND=memory) and as the store behind the test suite.
Each mutation completes without yielding to the event loop, so the
(book, user) uniqueness check and the insert cannot interleave.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from bson import ObjectId

from .errors import DuplicateReviewError
from .models import Book, BookData, Review, ReviewData
from .query import CatalogQuery, SortKey
from .store import RecordStore

logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store mirroring MongoRecordStore semantics."""

    def __init__(self):
        self._books: Dict[str, Book] = {}
        self._reviews: Dict[str, Review] = {}

    async def connect(self) -> None:
        logger.info("Using in-memory record store")

    # Books

    def _average_rating(self, book_id: str) -> float:
        ratings = [r.rating for r in self._reviews.values() if r.book_id == book_id]
        return sum(ratings) / len(ratings) if ratings else 0.0

    async def find_books(self, query: CatalogQuery) -> List[Book]:
        candidates = [book for book in self._books.values() if query.matches(book)]

        descending = query.sort_direction < 0
        if query.sort == SortKey.RATING:
            averages = {book.id: self._average_rating(book.id) for book in candidates}
            candidates.sort(key=lambda book: averages[book.id], reverse=descending)
        else:
            candidates.sort(key=lambda book: getattr(book, query.sort_field), reverse=descending)

        page = candidates[query.skip:query.skip + query.limit]
        return [book.model_copy() for book in page]

    async def count_books(self, query: CatalogQuery) -> int:
        return sum(1 for book in self._books.values() if query.matches(book))

    async def get_book(self, book_id: str) -> Optional[Book]:
        book = self._books.get(book_id)
        return book.model_copy() if book else None

    async def get_books_by_ids(self, book_ids: Sequence[str]) -> List[Book]:
        return [self._books[book_id].model_copy() for book_id in book_ids if book_id in self._books]

    async def insert_book(self, data: BookData, owner_id: str) -> Book:
        now = datetime.now(timezone.utc)
        book = Book(
            id=str(ObjectId()),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
            **data.model_dump()
        )
        self._books[book.id] = book
        return book.model_copy()

    async def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        book = self._books.get(book_id)
        if book is None:
            return None
        updated = Book.model_validate({
            **book.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)
        })
        self._books[book_id] = updated
        return updated.model_copy()

    async def delete_book(self, book_id: str) -> bool:
        return self._books.pop(book_id, None) is not None

    # Reviews

    async def get_review(self, review_id: str) -> Optional[Review]:
        review = self._reviews.get(review_id)
        return review.model_copy() if review else None

    @staticmethod
    def _newest_first(reviews: List[Review]) -> List[Review]:
        # Reversing insertion order first keeps later inserts ahead on equal timestamps
        ordered = list(reversed(reviews))
        ordered.sort(key=lambda review: review.created_at, reverse=True)
        return [review.model_copy() for review in ordered]

    async def find_reviews_for_book(self, book_id: str) -> List[Review]:
        return self._newest_first([r for r in self._reviews.values() if r.book_id == book_id])

    async def find_reviews_for_books(self, book_ids: Sequence[str]) -> List[Review]:
        wanted = set(book_ids)
        return [r.model_copy() for r in self._reviews.values() if r.book_id in wanted]

    async def find_reviews_by_user(self, user_id: str) -> List[Review]:
        return self._newest_first([r for r in self._reviews.values() if r.user_id == user_id])

    async def find_review_by_user(self, book_id: str, user_id: str) -> Optional[Review]:
        for review in self._reviews.values():
            if review.book_id == book_id and review.user_id == user_id:
                return review.model_copy()
        return None

    async def insert_review(self, data: ReviewData, user_id: str) -> Review:
        if any(r.book_id == data.book_id and r.user_id == user_id for r in self._reviews.values()):
            raise DuplicateReviewError(f"User {user_id} already reviewed book {data.book_id}")

        now = datetime.now(timezone.utc)
        review = Review(
            id=str(ObjectId()),
            book_id=data.book_id,
            user_id=user_id,
            rating=data.rating,
            review_text=data.review_text,
            created_at=now,
            updated_at=now
        )
        self._reviews[review.id] = review
        return review.model_copy()

    async def update_review(self, review_id: str, changes: Dict[str, Any]) -> Optional[Review]:
        review = self._reviews.get(review_id)
        if review is None:
            return None
        updated = Review.model_validate({
            **review.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)
        })
        self._reviews[review_id] = updated
        return updated.model_copy()

    async def delete_review(self, review_id: str) -> bool:
        return self._reviews.pop(review_id, None) is not None

    async def delete_reviews_for_book(self, book_id: str) -> int:
        doomed = [review_id for review_id, r in self._reviews.items() if r.book_id == book_id]
        for review_id in doomed:
            del self._reviews[review_id]
        return len(doomed)

    # Monitoring

    async def get_stats(self) -> Dict[str, Any]:
        genres: Dict[str, int] = {}
        for book in self._books.values():
            genres[book.genre.value] = genres.get(book.genre.value, 0) + 1
        return {
            "total_books": len(self._books),
            "total_reviews": len(self._reviews),
            "books_by_genre": dict(sorted(genres.items())),
            "last_updated": datetime.now(timezone.utc).isoformat()
        }
