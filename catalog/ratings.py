"""
Rating aggregation over a book's reviews.

Averages are computed exactly and rounded half away from zero to one decimal,
so a 4.25 mean is always reported as 4.3.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Sequence

import structlog

from .models import RatingBucket, RatingSummary, Review

logger = structlog.get_logger(__name__)

STAR_VALUES = (1, 2, 3, 4, 5)
_ONE_DECIMAL = Decimal("0.1")


def round_rating(total: int, count: int) -> float:
    """Mean of ``total`` over ``count`` reviews, rounded half-up to one decimal."""
    if count == 0:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


class RatingAggregator:
    """Computes rating summaries for one book or a page of books."""

    def __init__(self, store):
        """
        Args:
            store: RecordStore used to fetch reviews
        """
        self.store = store

    @staticmethod
    def from_reviews(book_id: str, reviews: Iterable[Review]) -> RatingSummary:
        """
        Summarize an already fetched review set in a single pass.

        Average, count and distribution all come from the same snapshot.
        """
        counts = dict.fromkeys(STAR_VALUES, 0)
        total = 0
        review_count = 0

        for review in reviews:
            total += review.rating
            review_count += 1
            if review.rating in counts:
                counts[review.rating] += 1
            else:
                logger.warning("Review rating out of range", book_id=book_id,
                               review_id=review.id, rating=review.rating)

        return RatingSummary(
            book_id=book_id,
            average_rating=round_rating(total, review_count),
            review_count=review_count,
            distribution=[RatingBucket(star=star, count=counts[star]) for star in STAR_VALUES]
        )

    async def summarize(self, book_id: str) -> RatingSummary:
        """Summarize every review currently stored for one book."""
        reviews = await self.store.find_reviews_for_book(book_id)
        return self.from_reviews(book_id, reviews)

    async def summarize_many(self, book_ids: Sequence[str]) -> Dict[str, RatingSummary]:
        """
        Summarize a batch of books with a single review fetch.

        Args:
            book_ids: Books to summarize; books without reviews get an empty summary

        Returns:
            Mapping of book id to RatingSummary
        """
        if not book_ids:
            return {}

        grouped: Dict[str, List[Review]] = defaultdict(list)
        for review in await self.store.find_reviews_for_books(list(book_ids)):
            grouped[review.book_id].append(review)

        return {
            book_id: self.from_reviews(book_id, grouped.get(book_id, []))
            for book_id in book_ids
        }
