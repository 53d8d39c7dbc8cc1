"""
Error taxonomy for catalog operations.

Each error carries the HTTP status it maps to so the API layer can render it
without inspecting the type.
"""

from typing import Iterable, List, Optional

from pydantic import ValidationError


class CatalogError(Exception):
    """Base class for errors surfaced to catalog clients."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(detail or self.error)


class ValidationFailed(CatalogError):
    """Missing or malformed fields."""

    status_code = 400
    error = "Validation failed"

    def __init__(self, fields: Iterable[str], detail: Optional[str] = None):
        self.fields: List[str] = list(dict.fromkeys(fields))
        super().__init__(detail or f"Invalid or missing fields: {', '.join(self.fields)}")

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        """Build from a pydantic ValidationError, keeping the top-level field names."""
        fields = []
        messages = []
        for err in exc.errors():
            loc = err.get("loc") or ("body",)
            fields.append(str(loc[0]))
            messages.append(f"{loc[0]}: {err.get('msg')}")
        return cls(fields, detail="; ".join(messages))


class NotFound(CatalogError):
    """Book or review does not exist."""

    status_code = 404
    error = "Not found"


class Forbidden(CatalogError):
    """Authenticated principal does not own the resource."""

    status_code = 403
    error = "Forbidden"


class Conflict(CatalogError):
    """Duplicate review for the same book and principal."""

    status_code = 409
    error = "Conflict"


class Unauthenticated(CatalogError):
    """Missing, expired or malformed credential."""

    status_code = 401
    error = "Not authenticated"

    MISSING_TOKEN = "missing_token"
    TOKEN_EXPIRED = "token_expired"
    INVALID_TOKEN = "invalid_token"
    MISSING_SUBJECT = "missing_subject"

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        super().__init__(detail)


class Internal(CatalogError):
    """Unexpected store or collaborator failure."""


class DuplicateReviewError(Exception):
    """Raised by a RecordStore when the (book, user) unique constraint rejects an insert."""
