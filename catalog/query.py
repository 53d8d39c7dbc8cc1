"""
Catalog query building.

Turns raw listing parameters (page, search, genre, sort) into a validated
CatalogQuery carrying the filter, ordering and pagination window. The same
query can be rendered as a MongoDB filter/sort or evaluated in process.
"""

import math
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING

from .errors import ValidationFailed
from .models import Book, Genre

PAGE_SIZE = 8
ALL_GENRES = "All"

# Largest skip a MongoDB query can carry (signed 64-bit)
MAX_SKIP = 2 ** 63 - 1


class SortKey(str, Enum):
    """Sort options for book listings."""
    LATEST = "latest"
    TITLE = "title"
    AUTHOR = "author"
    YEAR = "year"
    RATING = "rating"


# Stored field and direction for each sort key. "average_rating" is derived
# at query time; it is never a stored book field.
SORT_FIELDS: Dict[SortKey, Tuple[str, int]] = {
    SortKey.LATEST: ("created_at", DESCENDING),
    SortKey.TITLE: ("title", ASCENDING),
    SortKey.AUTHOR: ("author", ASCENDING),
    SortKey.YEAR: ("published_year", DESCENDING),
    SortKey.RATING: ("average_rating", DESCENDING),
}


class CatalogQuery(BaseModel):
    """Validated listing query."""
    page: int = Field(1, ge=1, description="Page number")
    search: Optional[str] = Field(None, description="Title/author substring")
    genre: Optional[Genre] = Field(None, description="Exact genre filter")
    sort: SortKey = Field(SortKey.LATEST, description="Sort key")
    page_size: int = Field(PAGE_SIZE, ge=1, description="Records per page")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def sort_field(self) -> str:
        return SORT_FIELDS[self.sort][0]

    @property
    def sort_direction(self) -> int:
        return SORT_FIELDS[self.sort][1]

    def mongo_filter(self) -> Dict[str, Any]:
        """Render the filter as a MongoDB query document."""
        filter_query: Dict[str, Any] = {}

        if self.search:
            pattern = re.escape(self.search)
            filter_query["$or"] = [
                {"title": {"$regex": pattern, "$options": "i"}},
                {"author": {"$regex": pattern, "$options": "i"}},
            ]

        if self.genre is not None:
            filter_query["genre"] = self.genre.value

        return filter_query

    def mongo_sort(self) -> List[Tuple[str, int]]:
        """Render the ordering as a MongoDB sort list, tie-broken by insertion order."""
        return [(self.sort_field, self.sort_direction), ("_id", ASCENDING)]

    def matches(self, book: Book) -> bool:
        """Evaluate the filter against a single book."""
        if self.search:
            needle = self.search.lower()
            if needle not in book.title.lower() and needle not in book.author.lower():
                return False

        if self.genre is not None and book.genre != self.genre:
            return False

        return True

    def total_pages(self, total: int) -> int:
        """Number of pages needed for ``total`` matching records."""
        return math.ceil(total / self.page_size)


class CatalogQueryBuilder:
    """Parses raw listing parameters into a CatalogQuery."""

    def __init__(self, page_size: int = PAGE_SIZE):
        self.page_size = page_size

    def build(
        self,
        page: Any = None,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        sort: Optional[str] = None
    ) -> CatalogQuery:
        """
        Build a query from raw parameters.

        Args:
            page: Page number (string or int); missing means 1
            search: Free-text term matched against title or author
            genre: Genre name; missing or "All" disables the filter
            sort: One of latest, title, author, year, rating

        Returns:
            Validated CatalogQuery

        Raises:
            ValidationFailed: If any parameter is out of range or unknown
        """
        invalid = []

        parsed_page = self._parse_page(page)
        if parsed_page is None or (parsed_page - 1) * self.page_size > MAX_SKIP:
            invalid.append("page")

        parsed_genre = None
        if genre is not None and genre.strip() and genre.strip() != ALL_GENRES:
            try:
                parsed_genre = Genre(genre.strip())
            except ValueError:
                invalid.append("genre")

        parsed_sort = SortKey.LATEST
        if sort is not None and sort.strip():
            try:
                parsed_sort = SortKey(sort.strip().lower())
            except ValueError:
                invalid.append("sort")

        if invalid:
            raise ValidationFailed(invalid, detail=f"Invalid query parameters: {', '.join(invalid)}")

        term = search.strip() if search else None

        return CatalogQuery(
            page=parsed_page,
            search=term or None,
            genre=parsed_genre,
            sort=parsed_sort,
            page_size=self.page_size
        )

    @staticmethod
    def _parse_page(page: Any) -> Optional[int]:
        if page is None:
            return 1
        if isinstance(page, bool):
            return None
        if isinstance(page, int):
            return page if page >= 1 else None

        text = str(page).strip()
        if not text:
            return 1
        if not re.fullmatch(r"[0-9]+", text):
            return None

        value = int(text)
        return value if value >= 1 else None
