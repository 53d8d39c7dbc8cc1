"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.auth import create_access_token
from api.config import APIConfig
from api.main import create_app
from catalog.memory import InMemoryRecordStore
from catalog.models import BookData, Genre, ReviewData
from catalog.service import CatalogService

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"
OWNER_ID = "64b7f0c2a1e4d5f6a7b8c9d0"
OTHER_ID = "64b7f0c2a1e4d5f6a7b8c9d1"


@pytest.fixture
def store():
    """Create an empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def service(store):
    """Create a catalog service over the in-memory store."""
    return CatalogService(store)


@pytest.fixture
def sample_book_payload():
    """Sample book creation payload as sent by clients."""
    return {
        "title": "Nineteen Eighty-Four",
        "author": "George Orwell",
        "description": "A dystopian novel about surveillance and control.",
        "genre": "Fiction",
        "publishedYear": 1949
    }


@pytest.fixture
def sample_book_data():
    """Create sample validated book data."""
    return BookData(
        title="Nineteen Eighty-Four",
        author="George Orwell",
        description="A dystopian novel about surveillance and control.",
        genre=Genre.FICTION,
        published_year=1949
    )


@pytest_asyncio.fixture
async def stored_book(store, sample_book_data):
    """A book owned by OWNER_ID."""
    return await store.insert_book(sample_book_data, owner_id=OWNER_ID)


@pytest_asyncio.fixture
async def stored_review(store, stored_book):
    """A five-star review of ``stored_book`` written by OTHER_ID."""
    return await store.insert_review(
        ReviewData(book_id=stored_book.id, rating=5, review_text="Chilling and still relevant today."),
        user_id=OTHER_ID
    )


@pytest.fixture
def api_settings():
    """API settings with a known signing secret."""
    return APIConfig(jwt_secret=TEST_SECRET, debug=False)


@pytest.fixture
def client(store, api_settings):
    """Create test client serving the in-memory store."""
    app = create_app(store=store, settings=api_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a principal."""
    def _headers(principal_id=OWNER_ID, expires_minutes=30):
        token = create_access_token(principal_id, TEST_SECRET, expires_minutes=expires_minutes)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def owner_id():
    """Principal that owns ``stored_book``."""
    return OWNER_ID


@pytest.fixture
def other_id():
    """Principal that wrote ``stored_review``."""
    return OTHER_ID
