"""
MongoDB RecordStore for async operations.
Handles connection, indexing, and CRUD operations for books and reviews.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from .errors import DuplicateReviewError
from .models import Book, BookData, Review, ReviewData
from .query import CatalogQuery, SortKey
from .store import RecordStore

logger = structlog.get_logger(__name__)


def _object_id(value: Any) -> Optional[ObjectId]:
    """Convert a client-supplied id; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _book_from_doc(doc: Dict[str, Any]) -> Book:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Book.model_validate(doc)


def _review_from_doc(doc: Dict[str, Any]) -> Review:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    doc["book_id"] = str(doc["book_id"])
    return Review.model_validate(doc)


class MongoRecordStore(RecordStore):
    """
    Async MongoDB store for catalog records.
    Books and reviews live in two collections; review uniqueness per
    (book, user) is enforced by a unique compound index.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        reviews_collection: str = "reviews"
    ):
        """
        Initialize MongoDB store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Name of the books collection
            reviews_collection: Name of the reviews collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.books_collection_name = books_collection
        self.reviews_collection_name = reviews_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.books: Optional[AsyncIOMotorCollection] = None
        self.reviews: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]
            self.books = self.database[self.books_collection_name]
            self.reviews = self.database[self.reviews_collection_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        books=self.books_collection_name,
                        reviews=self.reviews_collection_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create indexes for the listing sorts, review lookups and the
        one-review-per-user-per-book constraint.
        """
        try:
            await self.books.create_index([("created_at", DESCENDING)])
            await self.books.create_index("title")
            await self.books.create_index("author")
            await self.books.create_index("genre")
            await self.books.create_index([("published_year", DESCENDING)])
            await self.books.create_index("owner_id")

            await self.reviews.create_index(
                [("book_id", ASCENDING), ("user_id", ASCENDING)], unique=True
            )
            await self.reviews.create_index([("book_id", ASCENDING), ("created_at", DESCENDING)])
            await self.reviews.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Books

    async def find_books(self, query: CatalogQuery) -> List[Book]:
        """
        Fetch one page of books.

        Rating order needs every candidate's mean before paging, so it runs as
        an aggregation joining the reviews collection.
        """
        try:
            if query.sort == SortKey.RATING:
                pipeline = [
                    {"$match": query.mongo_filter()},
                    {"$lookup": {
                        "from": self.reviews_collection_name,
                        "localField": "_id",
                        "foreignField": "book_id",
                        "as": "_reviews",
                    }},
                    {"$addFields": {
                        "_average_rating": {"$ifNull": [{"$avg": "$_reviews.rating"}, 0]},
                    }},
                    {"$sort": {"_average_rating": DESCENDING, "_id": ASCENDING}},
                    {"$skip": query.skip},
                    {"$limit": query.limit},
                    {"$project": {"_reviews": 0, "_average_rating": 0}},
                ]
                docs = await self.books.aggregate(pipeline).to_list(length=query.limit)
            else:
                cursor = (
                    self.books.find(query.mongo_filter())
                    .sort(query.mongo_sort())
                    .skip(query.skip)
                    .limit(query.limit)
                )
                docs = await cursor.to_list(length=query.limit)

            return [_book_from_doc(doc) for doc in docs]

        except Exception as e:
            logger.error("Failed to find books", error=str(e), query=query.model_dump())
            raise

    async def count_books(self, query: CatalogQuery) -> int:
        try:
            return await self.books.count_documents(query.mongo_filter())
        except Exception as e:
            logger.error("Failed to count books", error=str(e), query=query.model_dump())
            raise

    async def get_book(self, book_id: str) -> Optional[Book]:
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        try:
            doc = await self.books.find_one({"_id": object_id})
            return _book_from_doc(doc) if doc else None
        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

    async def get_books_by_ids(self, book_ids: Sequence[str]) -> List[Book]:
        object_ids = [oid for oid in (_object_id(book_id) for book_id in book_ids) if oid]
        if not object_ids:
            return []
        try:
            cursor = self.books.find({"_id": {"$in": object_ids}})
            return [_book_from_doc(doc) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get books by IDs", count=len(object_ids), error=str(e))
            raise

    async def insert_book(self, data: BookData, owner_id: str) -> Book:
        """
        Insert a single book.

        Args:
            data: Validated book payload
            owner_id: Principal creating the book

        Returns:
            Stored Book
        """
        now = datetime.now(timezone.utc)
        doc = data.model_dump(mode="json")
        doc.update({"owner_id": owner_id, "created_at": now, "updated_at": now})
        try:
            result = await self.books.insert_one(doc)
            doc["_id"] = result.inserted_id
            logger.debug("Successfully inserted book", book_id=str(result.inserted_id), title=data.title)
            return _book_from_doc(doc)
        except Exception as e:
            logger.error("Failed to insert book", title=data.title, error=str(e))
            raise

    async def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        try:
            doc = await self.books.find_one_and_update(
                {"_id": object_id},
                {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER
            )
            if doc is None:
                logger.warning("Book not found for update", book_id=book_id)
                return None
            return _book_from_doc(doc)
        except Exception as e:
            logger.error("Failed to update book by ID", book_id=book_id, error=str(e))
            raise

    async def delete_book(self, book_id: str) -> bool:
        object_id = _object_id(book_id)
        if object_id is None:
            return False
        try:
            result = await self.books.delete_one({"_id": object_id})
            if result.deleted_count == 0:
                logger.warning("Book not found for deletion", book_id=book_id)
                return False
            return True
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise

    # Reviews

    async def get_review(self, review_id: str) -> Optional[Review]:
        object_id = _object_id(review_id)
        if object_id is None:
            return None
        try:
            doc = await self.reviews.find_one({"_id": object_id})
            return _review_from_doc(doc) if doc else None
        except Exception as e:
            logger.error("Failed to get review by ID", review_id=review_id, error=str(e))
            raise

    async def find_reviews_for_book(self, book_id: str) -> List[Review]:
        object_id = _object_id(book_id)
        if object_id is None:
            return []
        try:
            cursor = self.reviews.find({"book_id": object_id}).sort(
                [("created_at", DESCENDING), ("_id", DESCENDING)]
            )
            return [_review_from_doc(doc) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get reviews for book", book_id=book_id, error=str(e))
            raise

    async def find_reviews_for_books(self, book_ids: Sequence[str]) -> List[Review]:
        object_ids = [oid for oid in (_object_id(book_id) for book_id in book_ids) if oid]
        if not object_ids:
            return []
        try:
            cursor = self.reviews.find({"book_id": {"$in": object_ids}})
            return [_review_from_doc(doc) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get reviews for books", count=len(object_ids), error=str(e))
            raise

    async def find_reviews_by_user(self, user_id: str) -> List[Review]:
        try:
            cursor = self.reviews.find({"user_id": user_id}).sort(
                [("created_at", DESCENDING), ("_id", DESCENDING)]
            )
            return [_review_from_doc(doc) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get reviews by user", user_id=user_id, error=str(e))
            raise

    async def find_review_by_user(self, book_id: str, user_id: str) -> Optional[Review]:
        object_id = _object_id(book_id)
        if object_id is None:
            return None
        try:
            doc = await self.reviews.find_one({"book_id": object_id, "user_id": user_id})
            return _review_from_doc(doc) if doc else None
        except Exception as e:
            logger.error("Failed to find user review", book_id=book_id, user_id=user_id, error=str(e))
            raise

    async def insert_review(self, data: ReviewData, user_id: str) -> Review:
        now = datetime.now(timezone.utc)
        doc = {
            "book_id": ObjectId(data.book_id),
            "user_id": user_id,
            "rating": data.rating,
            "review_text": data.review_text,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.reviews.insert_one(doc)
            doc["_id"] = result.inserted_id
            logger.debug("Successfully inserted review", review_id=str(result.inserted_id),
                         book_id=data.book_id, user_id=user_id)
            return _review_from_doc(doc)
        except DuplicateKeyError:
            logger.warning("Review already exists", book_id=data.book_id, user_id=user_id)
            raise DuplicateReviewError(f"User {user_id} already reviewed book {data.book_id}")
        except Exception as e:
            logger.error("Failed to insert review", book_id=data.book_id, error=str(e))
            raise

    async def update_review(self, review_id: str, changes: Dict[str, Any]) -> Optional[Review]:
        object_id = _object_id(review_id)
        if object_id is None:
            return None
        try:
            doc = await self.reviews.find_one_and_update(
                {"_id": object_id},
                {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER
            )
            if doc is None:
                logger.warning("Review not found for update", review_id=review_id)
                return None
            return _review_from_doc(doc)
        except Exception as e:
            logger.error("Failed to update review", review_id=review_id, error=str(e))
            raise

    async def delete_review(self, review_id: str) -> bool:
        object_id = _object_id(review_id)
        if object_id is None:
            return False
        try:
            result = await self.reviews.delete_one({"_id": object_id})
            return result.deleted_count > 0
        except Exception as e:
            logger.error("Failed to delete review", review_id=review_id, error=str(e))
            raise

    async def delete_reviews_for_book(self, book_id: str) -> int:
        object_id = _object_id(book_id)
        if object_id is None:
            return 0
        try:
            result = await self.reviews.delete_many({"book_id": object_id})
            return result.deleted_count
        except Exception as e:
            logger.error("Failed to delete reviews for book", book_id=book_id, error=str(e))
            raise

    # Monitoring

    async def get_stats(self) -> Dict[str, Any]:
        """Get record counts per collection and per genre."""
        try:
            genres = {}
            async for row in self.books.aggregate([{"$group": {"_id": "$genre", "count": {"$sum": 1}}}]):
                genres[row["_id"]] = row["count"]

            return {
                "total_books": await self.books.count_documents({}),
                "total_reviews": await self.reviews.count_documents({}),
                "books_by_genre": dict(sorted(genres.items())),
                "last_updated": datetime.now(timezone.utc).isoformat()
            }
        except Exception as e:
            logger.error("Failed to get database stats", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """Ping the server before gathering counts."""
        try:
            await self.database.command("ping")
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
        return await super().health_check()
