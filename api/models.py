"""
API response models for the FastAPI application.

Payloads are serialized with camelCase field names.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from catalog.models import Book, Review
from catalog.service import BookDetail, BookPage, UserReview


class BookListResponse(BookPage):
    """Response model for the paginated book listing."""
    success: bool = Field(True, description="Request succeeded")


class BookDetailResponse(BookDetail):
    """Response model for a single book with reviews and rating statistics."""
    success: bool = Field(True, description="Request succeeded")


class BookMutationResponse(BaseModel):
    """Response model for book creation and update."""
    success: bool = Field(True, description="Request succeeded")
    message: str = Field(..., description="Human-readable outcome")
    book: Book = Field(..., description="Affected book")


class ReviewMutationResponse(BaseModel):
    """Response model for review creation and update."""
    success: bool = Field(True, description="Request succeeded")
    message: str = Field(..., description="Human-readable outcome")
    review: Review = Field(..., description="Affected review")


class DeleteResponse(BaseModel):
    """Response model for deletions."""
    success: bool = Field(True, description="Request succeeded")
    message: str = Field(..., description="Human-readable outcome")


class UserReviewsResponse(BaseModel):
    """Response model for the reviews written by one user."""
    success: bool = Field(True, description="Request succeeded")
    reviews: List[UserReview] = Field(..., description="Reviews, newest first")
    count: int = Field(..., description="Number of reviews")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")
    fields: Optional[List[str]] = Field(None, description="Invalid or missing fields")
    reason: Optional[str] = Field(None, description="Authentication failure reason")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Record store status")
