"""
Catalog service.

Orchestrates query building, storage, rating aggregation and authorization
into the operations exposed by the API. The service holds no state beyond
its collaborators; every call reads the store afresh.
"""

from typing import Any, Dict, List, Mapping, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import Conflict, DuplicateReviewError, NotFound, ValidationFailed
from .guards import OwnershipGuard, ReviewConstraintEnforcer
from .models import Book, BookData, BookSummary, BookUpdate, RatingBucket, Review
from .query import CatalogQueryBuilder
from .ratings import RatingAggregator
from .store import RecordStore

logger = structlog.get_logger(__name__)


class BookListItem(Book):
    """Book record annotated with its rating summary."""
    average_rating: float = 0
    review_count: int = 0


class BookPage(BaseModel):
    """One page of the catalog listing."""
    books: List[BookListItem]
    current_page: int
    total_pages: int
    total_books: int

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class BookDetail(BaseModel):
    """A book with its reviews and rating statistics."""
    book: Book
    reviews: List[Review]
    average_rating: float
    total_reviews: int
    rating_distribution: List[RatingBucket]

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class UserReview(Review):
    """Review annotated with a summary of the reviewed book."""
    book: Optional[BookSummary] = Field(None, description="Reviewed book, if it still exists")


class CatalogService:
    """Entry point for catalog reads and owner-gated mutations."""

    def __init__(
        self,
        store: RecordStore,
        query_builder: Optional[CatalogQueryBuilder] = None,
        guard: Optional[OwnershipGuard] = None
    ):
        """
        Args:
            store: RecordStore holding books and reviews
            query_builder: Listing parameter parser (default page size 8)
            guard: Ownership guard
        """
        self.store = store
        self.query_builder = query_builder or CatalogQueryBuilder()
        self.guard = guard or OwnershipGuard()
        self.ratings = RatingAggregator(store)
        self.review_constraints = ReviewConstraintEnforcer(store)

    # Reads

    async def list_books(
        self,
        page: Any = None,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        sort: Optional[str] = None
    ) -> BookPage:
        """
        Get books with filtering, sorting, and pagination.

        Ratings for the whole page are fetched in one batch. The total is a
        separate count and may drift from the page under concurrent writes.

        Raises:
            ValidationFailed: If a listing parameter is invalid
        """
        query = self.query_builder.build(page=page, search=search, genre=genre, sort=sort)

        books = await self.store.find_books(query)
        total = await self.store.count_books(query)
        summaries = await self.ratings.summarize_many([book.id for book in books])

        items = [
            BookListItem(
                **book.model_dump(),
                average_rating=summaries[book.id].average_rating,
                review_count=summaries[book.id].review_count
            )
            for book in books
        ]

        return BookPage(
            books=items,
            current_page=query.page,
            total_pages=query.total_pages(total),
            total_books=total
        )

    async def get_book_detail(self, book_id: str) -> BookDetail:
        """
        Get a book, its reviews (newest first) and rating statistics.

        Raises:
            NotFound: If the book does not exist
        """
        book = await self.store.get_book(book_id)
        if book is None:
            raise NotFound("Book not found")

        reviews = await self.store.find_reviews_for_book(book.id)
        summary = self.ratings.from_reviews(book.id, reviews)

        return BookDetail(
            book=book,
            reviews=reviews,
            average_rating=summary.average_rating,
            total_reviews=summary.review_count,
            rating_distribution=summary.distribution
        )

    async def list_user_reviews(self, user_id: str) -> List[UserReview]:
        """All reviews written by ``user_id``, newest first, with book summaries."""
        reviews = await self.store.find_reviews_by_user(user_id)
        books = await self.store.get_books_by_ids(list({r.book_id for r in reviews}))
        by_id = {book.id: BookSummary(id=book.id, title=book.title, author=book.author)
                 for book in books}

        return [UserReview(**review.model_dump(), book=by_id.get(review.book_id))
                for review in reviews]

    # Book mutations

    async def create_book(self, payload: Mapping[str, Any], principal_id: str) -> Book:
        """
        Create a book owned by ``principal_id``.

        Raises:
            ValidationFailed: If a field is missing or malformed
        """
        try:
            data = BookData.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e)

        book = await self.store.insert_book(data, owner_id=principal_id)
        logger.info("Book created", book_id=book.id, owner_id=principal_id, title=book.title)
        return book

    async def update_book(self, book_id: str, payload: Mapping[str, Any], principal_id: str) -> Book:
        """
        Update the supplied fields of a book owned by ``principal_id``.

        Owner and timestamps are not updatable and are ignored if sent.

        Raises:
            NotFound, Forbidden, ValidationFailed
        """
        self.guard.authorize(await self.store.get_book(book_id), principal_id, "book")

        try:
            update = BookUpdate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e)

        changes = update.model_dump(mode="json", exclude_unset=True)
        if not changes:
            raise ValidationFailed(["title", "author", "description", "genre", "publishedYear"],
                                   detail="Provide at least one field to update")

        book = await self.store.update_book(book_id, changes)
        if book is None:
            raise NotFound("Book not found")

        logger.info("Book updated", book_id=book_id, owner_id=principal_id, fields=sorted(changes))
        return book

    async def delete_book(self, book_id: str, principal_id: str) -> int:
        """
        Delete a book owned by ``principal_id`` together with all its reviews.

        Returns:
            Number of reviews removed with the book

        Raises:
            NotFound, Forbidden
        """
        self.guard.authorize(await self.store.get_book(book_id), principal_id, "book")

        if not await self.store.delete_book(book_id):
            raise NotFound("Book not found")
        removed = await self.store.delete_reviews_for_book(book_id)

        logger.info("Book deleted", book_id=book_id, owner_id=principal_id, reviews_removed=removed)
        return removed

    # Review mutations

    async def create_review(self, payload: Mapping[str, Any], principal_id: str) -> Review:
        """
        Create the principal's review of a book.

        Raises:
            ValidationFailed, NotFound, Conflict
        """
        data = await self.review_constraints.check_new_review(payload, principal_id)

        try:
            review = await self.store.insert_review(data, user_id=principal_id)
        except DuplicateReviewError:
            raise Conflict("You have already reviewed this book. Please update your existing review.")

        # The book may have been deleted after the existence check
        if await self.store.get_book(data.book_id) is None:
            await self.store.delete_review(review.id)
            logger.warning("Book deleted while reviewing", review_id=review.id, book_id=data.book_id)
            raise NotFound("Book not found")

        logger.info("Review created", review_id=review.id, book_id=review.book_id,
                    user_id=principal_id, rating=review.rating)
        return review

    async def update_review(self, review_id: str, payload: Mapping[str, Any], principal_id: str) -> Review:
        """
        Update rating and/or text of the principal's review.

        Raises:
            NotFound, Forbidden, ValidationFailed
        """
        existing = await self.store.get_review(review_id)
        self.guard.authorize(existing, principal_id, "review", owner_field="user_id")

        changes = self.review_constraints.check_review_update(payload)

        review = await self.store.update_review(review_id, changes)
        if review is None:
            raise NotFound("Review not found")

        logger.info("Review updated", review_id=review_id, user_id=principal_id, fields=sorted(changes))
        return review

    async def delete_review(self, review_id: str, principal_id: str) -> None:
        """
        Delete the principal's review.

        Raises:
            NotFound, Forbidden
        """
        existing = await self.store.get_review(review_id)
        self.guard.authorize(existing, principal_id, "review", owner_field="user_id")

        if not await self.store.delete_review(review_id):
            raise NotFound("Review not found")

        logger.info("Review deleted", review_id=review_id, user_id=principal_id)

    async def get_stats(self) -> Dict[str, Any]:
        return await self.store.get_stats()
