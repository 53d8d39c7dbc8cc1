"""
Tests for the FastAPI application.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from catalog.memory import InMemoryRecordStore


def create_book(client, headers, payload):
    response = client.post("/books", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["book"]


def create_review(client, headers, book_id, rating=4, text="Worth every page of it."):
    response = client.post(
        "/reviews", json={"bookId": book_id, "rating": rating, "reviewText": text}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()["review"]


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_status"] == "healthy"
    assert "timestamp" in data
    assert "version" in data


def test_health_check_degraded(api_settings):
    store = InMemoryRecordStore()
    store.get_stats = AsyncMock(side_effect=Exception("store offline"))

    with TestClient(create_app(store=store, settings=api_settings)) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database_status"] == "unhealthy"


class TestBookReads:
    """Public book endpoints."""

    def test_list_books_is_public(self, client):
        response = client.get("/books")

        assert response.status_code == 200
        data = response.json()
        assert data == {"success": True, "books": [], "currentPage": 1, "totalPages": 0, "totalBooks": 0}

    def test_list_books_camel_case(self, client, auth_headers, sample_book_payload):
        create_book(client, auth_headers(), sample_book_payload)

        data = client.get("/books").json()

        book = data["books"][0]
        assert book["title"] == "Nineteen Eighty-Four"
        assert book["publishedYear"] == 1949
        assert book["averageRating"] == 0
        assert book["reviewCount"] == 0
        assert "ownerId" in book
        assert "createdAt" in book
        assert data["totalBooks"] == 1

    def test_list_books_query_parameters(self, client, auth_headers, sample_book_payload):
        headers = auth_headers()
        create_book(client, headers, sample_book_payload)
        create_book(client, headers, {**sample_book_payload, "title": "Dune", "author": "Frank Herbert",
                                      "genre": "Sci-Fi", "publishedYear": 1965})

        by_genre = client.get("/books", params={"genre": "Sci-Fi"}).json()
        by_search = client.get("/books", params={"search": "orwell", "genre": "All"}).json()
        by_title = client.get("/books", params={"sort": "title"}).json()

        assert [b["title"] for b in by_genre["books"]] == ["Dune"]
        assert [b["title"] for b in by_search["books"]] == ["Nineteen Eighty-Four"]
        assert [b["title"] for b in by_title["books"]] == ["Dune", "Nineteen Eighty-Four"]

    @pytest.mark.parametrize("params,field", [
        ({"page": "0"}, "page"),
        ({"page": "abc"}, "page"),
        ({"page": "9" * 20}, "page"),
        ({"sort": "price"}, "sort"),
        ({"genre": "Poetry"}, "genre"),
    ])
    def test_list_books_invalid_parameters(self, client, params, field):
        response = client.get("/books", params=params)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Validation failed"
        assert data["fields"] == [field]
        assert data["status_code"] == 400

    def test_page_beyond_end(self, client, auth_headers, sample_book_payload):
        create_book(client, auth_headers(), sample_book_payload)

        data = client.get("/books", params={"page": "5"}).json()

        assert data["books"] == []
        assert data["currentPage"] == 5
        assert data["totalPages"] == 1

    def test_book_detail(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        create_review(client, auth_headers(other_id), book["id"], rating=5)

        response = client.get(f"/books/{book['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["book"]["id"] == book["id"]
        assert data["averageRating"] == 5.0
        assert data["totalReviews"] == 1
        assert data["reviews"][0]["userId"] == other_id
        assert data["ratingDistribution"][4] == {"star": 5, "count": 1}

    @pytest.mark.parametrize("book_id", ["64b7f0c2a1e4d5f6a7b8c9ff", "not-an-id"])
    def test_book_not_found(self, client, book_id):
        """Test book not found."""
        response = client.get(f"/books/{book_id}")

        assert response.status_code == 404
        assert response.json()["error"] == "Not found"


class TestAuthentication:
    """Bearer token handling on mutating endpoints."""

    def test_missing_token(self, client, sample_book_payload):
        response = client.post("/books", json=sample_book_payload)

        assert response.status_code == 401
        assert response.json()["reason"] == "missing_token"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_non_bearer_scheme(self, client, sample_book_payload):
        response = client.post("/books", json=sample_book_payload, headers={"Authorization": "Basic abc"})

        assert response.status_code == 401
        assert response.json()["reason"] == "missing_token"

    def test_expired_token(self, client, auth_headers, sample_book_payload):
        response = client.post("/books", json=sample_book_payload, headers=auth_headers(expires_minutes=-5))

        assert response.status_code == 401
        assert response.json()["reason"] == "token_expired"

    def test_malformed_token(self, client, sample_book_payload):
        response = client.post("/books", json=sample_book_payload,
                               headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_token"

    def test_auth_checked_before_body(self, client):
        response = client.post("/books", json={"title": ""})

        assert response.status_code == 401


class TestBookMutations:
    """Owner-gated book endpoints."""

    def test_create_book(self, client, auth_headers, sample_book_payload, owner_id):
        response = client.post("/books", json=sample_book_payload, headers=auth_headers())

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Book created successfully"
        assert data["book"]["ownerId"] == owner_id

    def test_create_book_validation(self, client, auth_headers):
        response = client.post("/books", json={"title": "Lonely"}, headers=auth_headers())

        assert response.status_code == 400
        assert set(response.json()["fields"]) == {"author", "description", "genre", "publishedYear"}

    def test_create_book_non_object_body(self, client, auth_headers):
        response = client.post("/books", json=["not", "an", "object"], headers=auth_headers())

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_update_book(self, client, auth_headers, sample_book_payload):
        headers = auth_headers()
        book = create_book(client, headers, sample_book_payload)

        response = client.put(f"/books/{book['id']}", json={"publishedYear": 1950}, headers=headers)

        assert response.status_code == 200
        data = response.json()["book"]
        assert data["publishedYear"] == 1950
        assert data["title"] == book["title"]

    def test_update_book_forbidden(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)

        response = client.put(f"/books/{book['id']}", json={"title": "Mine now"},
                              headers=auth_headers(other_id))

        assert response.status_code == 403
        assert client.get(f"/books/{book['id']}").json()["book"]["title"] == book["title"]

    def test_update_missing_book(self, client, auth_headers):
        response = client.put("/books/64b7f0c2a1e4d5f6a7b8c9ff", json={"title": "Ghost"},
                              headers=auth_headers())

        assert response.status_code == 404

    def test_delete_book_cascades(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        review = create_review(client, auth_headers(other_id), book["id"])

        response = client.delete(f"/books/{book['id']}", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["message"] == "Book and associated reviews deleted successfully"
        assert client.get(f"/books/{book['id']}").status_code == 404
        assert client.get(f"/reviews/user/{other_id}").json()["count"] == 0
        assert client.delete(f"/reviews/{review['id']}", headers=auth_headers(other_id)).status_code == 404

    def test_delete_book_forbidden(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)

        response = client.delete(f"/books/{book['id']}", headers=auth_headers(other_id))

        assert response.status_code == 403
        assert client.get(f"/books/{book['id']}").status_code == 200


class TestReviewEndpoints:
    """Review endpoints."""

    def test_create_review(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)

        response = client.post(
            "/reviews",
            json={"bookId": book["id"], "rating": 5, "reviewText": "Unsettling and essential."},
            headers=auth_headers(other_id)
        )

        assert response.status_code == 201
        review = response.json()["review"]
        assert review["bookId"] == book["id"]
        assert review["userId"] == other_id
        assert review["reviewText"] == "Unsettling and essential."

    def test_duplicate_review(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        create_review(client, auth_headers(other_id), book["id"])

        response = client.post(
            "/reviews",
            json={"bookId": book["id"], "rating": 1, "reviewText": "Reviewing this twice."},
            headers=auth_headers(other_id)
        )

        assert response.status_code == 409
        assert "already reviewed" in response.json()["detail"]

    def test_review_missing_book(self, client, auth_headers):
        response = client.post(
            "/reviews",
            json={"bookId": "64b7f0c2a1e4d5f6a7b8c9ff", "rating": 3, "reviewText": "There is no book."},
            headers=auth_headers()
        )

        assert response.status_code == 404

    def test_review_rating_bounds(self, client, auth_headers, sample_book_payload):
        book = create_book(client, auth_headers(), sample_book_payload)

        response = client.post(
            "/reviews",
            json={"bookId": book["id"], "rating": 6, "reviewText": "Off the charts, literally."},
            headers=auth_headers()
        )

        assert response.status_code == 400
        assert response.json()["fields"] == ["rating"]

    def test_update_review(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        review = create_review(client, auth_headers(other_id), book["id"], rating=5)

        response = client.put(f"/reviews/{review['id']}", json={"rating": 2}, headers=auth_headers(other_id))

        assert response.status_code == 200
        assert response.json()["review"]["rating"] == 2
        assert client.get(f"/books/{book['id']}").json()["averageRating"] == 2.0

    def test_update_review_forbidden(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        review = create_review(client, auth_headers(other_id), book["id"])

        response = client.put(f"/reviews/{review['id']}", json={"rating": 1}, headers=auth_headers())

        assert response.status_code == 403

    def test_delete_review(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        review = create_review(client, auth_headers(other_id), book["id"])

        response = client.delete(f"/reviews/{review['id']}", headers=auth_headers(other_id))

        assert response.status_code == 200
        assert client.get(f"/books/{book['id']}").json()["totalReviews"] == 0

    def test_user_reviews(self, client, auth_headers, sample_book_payload, other_id):
        book = create_book(client, auth_headers(), sample_book_payload)
        create_review(client, auth_headers(other_id), book["id"])

        response = client.get(f"/reviews/user/{other_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["reviews"][0]["book"] == {
            "id": book["id"], "title": book["title"], "author": book["author"]
        }


def test_unexpected_error_is_500(api_settings):
    store = InMemoryRecordStore()
    store.count_books = AsyncMock(side_effect=RuntimeError("disk on fire"))

    with TestClient(create_app(store=store, settings=api_settings), raise_server_exceptions=False) as client:
        response = client.get("/books")

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"
    assert "detail" not in response.json()
