"""
Pydantic models for catalog records.
Covers book and review payloads, stored records and derived rating summaries.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel


MIN_PUBLISHED_YEAR = 1000


def max_published_year() -> int:
    """Latest acceptable publication year (next calendar year)."""
    return datetime.now(timezone.utc).year + 1


class Genre(str, Enum):
    """Enum for the fixed set of book genres."""
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    MYSTERY = "Mystery"
    THRILLER = "Thriller"
    ROMANCE = "Romance"
    SCI_FI = "Sci-Fi"
    FANTASY = "Fantasy"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SELF_HELP = "Self-Help"
    OTHER = "Other"


class BookData(BaseModel):
    """
    Book payload accepted on creation.
    Field names are exposed in camelCase (``publishedYear``) on the wire.
    """
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, description="Author name")
    description: str = Field(..., min_length=10, description="Book description")
    genre: Genre = Field(..., description="Book genre")
    published_year: int = Field(..., ge=MIN_PUBLISHED_YEAR, description="Year of publication")

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @validator('published_year')
    def validate_published_year(cls, v):
        """Reject years beyond next year."""
        if v > max_published_year():
            raise ValueError('Year cannot be in the future')
        return v


class BookUpdate(BaseModel):
    """Partial book update; only supplied fields are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=10)
    genre: Optional[Genre] = None
    published_year: Optional[int] = Field(None, ge=MIN_PUBLISHED_YEAR)

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    @validator('published_year')
    def validate_published_year(cls, v):
        """Reject years beyond next year."""
        if v is not None and v > max_published_year():
            raise ValueError('Year cannot be in the future')
        return v

    @validator('title', 'author', 'description', 'genre', 'published_year', pre=True)
    def reject_explicit_null(cls, v):
        """A field sent as null cannot clear a required book attribute."""
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class Book(BaseModel):
    """Stored book record."""
    id: str = Field(..., description="Unique book identifier")
    title: str
    author: str
    description: str
    genre: Genre
    published_year: int
    owner_id: str = Field(..., description="Principal that created the book")
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class BookSummary(BaseModel):
    """Short book reference attached to a user's reviews."""
    id: str
    title: str
    author: str

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ReviewData(BaseModel):
    """Review payload accepted on creation."""
    book_id: str = Field(..., min_length=1, description="Reviewed book")
    rating: int = Field(..., ge=1, le=5, description="Rating (1-5)")
    review_text: str = Field(..., min_length=10, max_length=1000, description="Review text")

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ReviewUpdate(BaseModel):
    """Partial review update over rating and text."""
    rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = Field(None, min_length=10, max_length=1000)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    @validator('rating', 'review_text', pre=True)
    def reject_explicit_null(cls, v):
        """A field sent as null cannot clear a required review attribute."""
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class Review(BaseModel):
    """Stored review record."""
    id: str = Field(..., description="Unique review identifier")
    book_id: str
    user_id: str
    rating: int
    review_text: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class RatingBucket(BaseModel):
    """Number of reviews holding one star value."""
    star: int = Field(..., ge=1, le=5)
    count: int = Field(..., ge=0)


class RatingSummary(BaseModel):
    """
    Rating statistics derived from a book's reviews. Never persisted.
    """
    book_id: str
    average_rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    distribution: List[RatingBucket] = Field(default_factory=list)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}
