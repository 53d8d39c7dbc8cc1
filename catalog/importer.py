"""
Seed importer for the catalog.

Fetches works from the Open Library subjects API and stores them as books
owned by a given principal.
"""

from datetime import datetime
from typing import Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from .models import BookData, Genre
from .store import RecordStore

logger = structlog.get_logger(__name__)

SUBJECT_GENRES: Dict[str, Genre] = {
    "fiction": Genre.FICTION,
    "science_fiction": Genre.SCI_FI,
    "mystery": Genre.MYSTERY,
    "romance": Genre.ROMANCE,
    "fantasy": Genre.FANTASY,
    "thriller": Genre.THRILLER,
}

UNKNOWN_AUTHOR = "Unknown Author"
DEFAULT_PUBLISHED_YEAR = 2020


class ImportResult(BaseModel):
    """Model for seed import results."""
    success: bool = Field(..., description="Whether every subject was fetched and stored")
    imported: int = Field(0, description="Books stored")
    skipped: int = Field(0, description="Duplicate or invalid works skipped")
    errors: List[str] = Field(default_factory=list, description="Errors encountered")
    duration_seconds: float = Field(0, description="Total import duration in seconds")


def genre_for_subject(subject: str) -> Genre:
    """Map an Open Library subject slug to a catalog genre."""
    return SUBJECT_GENRES.get(subject, Genre.OTHER)


def work_to_book(work: Dict, subject: str) -> BookData:
    """
    Convert an Open Library work into a book payload.

    Raises:
        ValidationError: If the work cannot form a valid book
    """
    authors = work.get("authors") or []
    author = (authors[0].get("name") if authors else None) or UNKNOWN_AUTHOR
    label = subject.replace("_", " ")

    return BookData(
        title=work.get("title") or "",
        author=author,
        description=f"An engaging {label} book that captivates readers with its compelling narrative.",
        genre=genre_for_subject(subject),
        published_year=work.get("first_publish_year") or DEFAULT_PUBLISHED_YEAR
    )


class OpenLibraryImporter:
    """Imports seed books from Open Library into a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        base_url: str = "https://openlibrary.org",
        timeout: float = 30,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            store: Destination store
            base_url: Open Library base URL
            timeout: Request timeout in seconds
            headers: Extra request headers
            transport: Optional httpx transport (used to stub the API)
        """
        self.store = store
        self.client_config = {
            "base_url": base_url,
            "timeout": timeout,
            "headers": headers or {},
            "follow_redirects": True,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def fetch_subject(self, client: httpx.AsyncClient, subject: str, limit: int) -> List[Dict]:
        """Fetch the works listed under one subject."""
        response = await client.get(f"/subjects/{subject}.json", params={"limit": limit})
        response.raise_for_status()
        return response.json().get("works", [])

    async def import_books(self, subjects: List[str], owner_id: str, limit: int = 10) -> ImportResult:
        """
        Fetch works for each subject, deduplicate by title and store them.

        Args:
            subjects: Open Library subject slugs
            owner_id: Principal that will own the imported books
            limit: Works requested per subject

        Returns:
            ImportResult with counts and errors
        """
        start_time = datetime.now()
        errors: List[str] = []
        skipped = 0
        unique: Dict[str, BookData] = {}

        async with httpx.AsyncClient(**self.client_config) as client:
            for subject in subjects:
                logger.info("Fetching subject", subject=subject, limit=limit)
                try:
                    works = await self.fetch_subject(client, subject, limit)
                except httpx.HTTPError as e:
                    error_msg = f"Failed to fetch subject {subject}: {str(e)}"
                    logger.error("Subject fetch failed", subject=subject, error=str(e))
                    errors.append(error_msg)
                    continue

                for work in works:
                    try:
                        book = work_to_book(work, subject)
                    except ValidationError as e:
                        logger.warning("Skipping invalid work", subject=subject,
                                       title=work.get("title"), error=str(e))
                        skipped += 1
                        continue

                    # Later subjects win on duplicate titles
                    if book.title in unique:
                        skipped += 1
                    unique[book.title] = book

        imported = 0
        for book in unique.values():
            await self.store.insert_book(book, owner_id=owner_id)
            imported += 1

        duration = (datetime.now() - start_time).total_seconds()
        logger.info("Seed import completed", imported=imported, skipped=skipped,
                    errors=len(errors), duration_seconds=duration)

        return ImportResult(
            success=not errors,
            imported=imported,
            skipped=skipped,
            errors=errors,
            duration_seconds=duration
        )
