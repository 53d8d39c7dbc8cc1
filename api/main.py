"""
FastAPI main application for the BookNest Catalog API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import PrincipalResolver, get_current_principal
from api.config import APIConfig, config as api_config
from api.models import (
    BookDetailResponse, BookListResponse, BookMutationResponse,
    DeleteResponse, ErrorResponse, HealthResponse,
    ReviewMutationResponse, UserReviewsResponse
)
from catalog.errors import CatalogError, Internal, Unauthenticated, ValidationFailed
from catalog.service import CatalogService
from catalog.store import RecordStore, create_store
from utilities.config import CatalogConfig, config

# Setup logging
logger = structlog.get_logger(__name__)


def get_catalog_service(request: Request) -> CatalogService:
    """Catalog service bound to the running application."""
    return request.app.state.catalog_service


def _error_content(error: str, status_code: int, detail: Optional[str] = None, **extra) -> Dict[str, Any]:
    return ErrorResponse(
        error=error,
        detail=detail,
        status_code=status_code,
        **extra
    ).model_dump(exclude_none=True)


# Books endpoints
books_router = APIRouter(prefix="/books", tags=["Books"])


@books_router.get("", response_model=BookListResponse)
async def list_books(
    page: Optional[str] = None,
    search: Optional[str] = None,
    genre: Optional[str] = None,
    sort: Optional[str] = None,
    service: CatalogService = Depends(get_catalog_service)
):
    """
    Get books with filtering, sorting, and pagination (8 per page).

    - **page**: Page number (starts from 1)
    - **search**: Case-insensitive substring of title or author
    - **genre**: Exact genre, or "All" for no filter
    - **sort**: latest, title, author, year or rating
    """
    result = await service.list_books(page=page, search=search, genre=genre, sort=sort)
    return BookListResponse(**result.model_dump())


@books_router.get("/{book_id}", response_model=BookDetailResponse)
async def get_book(book_id: str, service: CatalogService = Depends(get_catalog_service)):
    """
    Get a single book with its reviews and rating distribution.

    - **book_id**: Book identifier
    """
    detail = await service.get_book_detail(book_id)
    return BookDetailResponse(**detail.model_dump())


@books_router.post("", response_model=BookMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: Dict[str, Any] = Body(...),
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """Create a book owned by the authenticated user."""
    book = await service.create_book(payload, principal_id)
    return BookMutationResponse(message="Book created successfully", book=book)


@books_router.put("/{book_id}", response_model=BookMutationResponse)
async def update_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """Update a book. Only the user who added it may do so."""
    book = await service.update_book(book_id, payload, principal_id)
    return BookMutationResponse(message="Book updated successfully", book=book)


@books_router.delete("/{book_id}", response_model=DeleteResponse)
async def delete_book(
    book_id: str,
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """Delete a book and all of its reviews. Only the user who added it may do so."""
    await service.delete_book(book_id, principal_id)
    return DeleteResponse(message="Book and associated reviews deleted successfully")


# Reviews endpoints
reviews_router = APIRouter(prefix="/reviews", tags=["Reviews"])


@reviews_router.post("", response_model=ReviewMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: Dict[str, Any] = Body(...),
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """
    Review a book. Each user may review a book once.

    - **bookId**: Reviewed book
    - **rating**: 1 to 5
    - **reviewText**: 10 to 1000 characters
    """
    review = await service.create_review(payload, principal_id)
    return ReviewMutationResponse(message="Review created successfully", review=review)


@reviews_router.put("/{review_id}", response_model=ReviewMutationResponse)
async def update_review(
    review_id: str,
    payload: Dict[str, Any] = Body(...),
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """Update the rating and/or text of your own review."""
    review = await service.update_review(review_id, payload, principal_id)
    return ReviewMutationResponse(message="Review updated successfully", review=review)


@reviews_router.delete("/{review_id}", response_model=DeleteResponse)
async def delete_review(
    review_id: str,
    principal_id: str = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service)
):
    """Delete your own review."""
    await service.delete_review(review_id, principal_id)
    return DeleteResponse(message="Review deleted successfully")


@reviews_router.get("/user/{user_id}", response_model=UserReviewsResponse)
async def list_user_reviews(user_id: str, service: CatalogService = Depends(get_catalog_service)):
    """
    Get all reviews written by a user, newest first.

    - **user_id**: Principal identifier
    """
    reviews = await service.list_user_reviews(user_id)
    return UserReviewsResponse(reviews=reviews, count=len(reviews))


def create_app(
    store: Optional[RecordStore] = None,
    settings: APIConfig = api_config,
    catalog_settings: CatalogConfig = config
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: RecordStore to serve; built from ``catalog_settings`` when omitted
        settings: API settings (JWT, CORS, debug)
        catalog_settings: Storage settings used when no store is given

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        logger.info("Starting BookNest API")

        record_store = store or create_store(catalog_settings)
        try:
            await record_store.connect()
            logger.info("Record store ready", backend=type(record_store).__name__)
        except Exception as e:
            logger.error("Failed to connect to record store", error=str(e))
            raise

        app.state.record_store = record_store
        app.state.catalog_service = CatalogService(record_store)

        yield

        # Shutdown
        logger.info("Shutting down BookNest API")
        await record_store.disconnect()

    app = FastAPI(
        title=settings.api_title,
        description="""
    Book catalog with user reviews and rating summaries.

    ## Features

    * **Catalog browsing**: search by title or author, filter by genre, sort and paginate
    * **Rating summaries**: average rating, review count and star distribution per book
    * **Reviews**: one review per user per book
    * **Ownership**: only the creator of a book or review may change or delete it

    ## Authentication

    Mutating endpoints require a bearer token in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
        version=settings.api_version,
        lifespan=lifespan
    )

    app.state.principal_resolver = PrincipalResolver(settings.jwt_secret, settings.jwt_algorithm)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(CatalogError)
    async def catalog_exception_handler(request: Request, exc: CatalogError):
        """Render catalog errors with their mapped status."""
        extra = {}
        headers = None
        if isinstance(exc, ValidationFailed):
            extra["fields"] = exc.fields
        if isinstance(exc, Unauthenticated):
            extra["reason"] = exc.reason
            headers = {"WWW-Authenticate": "Bearer"}

        if exc.status_code >= 500:
            logger.error("Catalog operation failed", error=str(exc), path=request.url.path)
        else:
            logger.info("Request rejected", error=exc.error, status_code=exc.status_code,
                        path=request.url.path, **extra)

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_content(exc.error, exc.status_code, exc.detail, **extra),
            headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Report malformed requests as validation failures."""
        fields = [str(err["loc"][-1]) for err in exc.errors() if err.get("loc")]
        failure = ValidationFailed(fields or ["body"])
        return JSONResponse(
            status_code=failure.status_code,
            content=_error_content(failure.error, failure.status_code, failure.detail, fields=failure.fields)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_content(str(exc.detail), exc.status_code),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=exc)
        failure = Internal(str(exc) if settings.debug else None)
        return JSONResponse(
            status_code=failure.status_code,
            content=_error_content(failure.error, failure.status_code, failure.detail)
        )

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        record_store: Optional[RecordStore] = getattr(request.app.state, "record_store", None)
        db_status = "unavailable"
        if record_store is not None:
            health_info = await record_store.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=settings.api_version,
            database_status=db_status
        )

    app.include_router(books_router)
    app.include_router(reviews_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
