"""
Authorization and review constraints for catalog mutations.

Existence is always checked before ownership. No lock is held between these
checks and the mutation that follows; the store call that performs the
mutation remains authoritative.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, TypeVar

import structlog
from pydantic import ValidationError

from .errors import Conflict, Forbidden, NotFound, ValidationFailed
from .models import ReviewData, ReviewUpdate

logger = structlog.get_logger(__name__)

Owned = TypeVar("Owned")


class AccessDecision(str, Enum):
    """Outcome of an ownership check."""
    AUTHORIZED = "authorized"
    FORBIDDEN = "forbidden"


class OwnershipGuard:
    """Grants mutation rights to the principal that created a resource."""

    @staticmethod
    def decide(owner_id: Any, principal_id: Any) -> AccessDecision:
        if owner_id is not None and str(owner_id) == str(principal_id):
            return AccessDecision.AUTHORIZED
        return AccessDecision.FORBIDDEN

    def authorize(
        self,
        resource: Optional[Owned],
        principal_id: str,
        kind: str,
        owner_field: str = "owner_id"
    ) -> Owned:
        """
        Ensure ``resource`` exists and belongs to ``principal_id``.

        Args:
            resource: Fetched record, or None if it does not exist
            principal_id: Authenticated principal
            kind: Resource name used in messages ("book", "review")
            owner_field: Attribute holding the owner id

        Returns:
            The resource itself

        Raises:
            NotFound: If the resource is None
            Forbidden: If the principal is not the owner
        """
        if resource is None:
            raise NotFound(f"{kind.capitalize()} not found")

        owner_id = getattr(resource, owner_field)
        if self.decide(owner_id, principal_id) is AccessDecision.FORBIDDEN:
            logger.warning("Ownership check failed", kind=kind,
                           resource_id=getattr(resource, "id", None), principal_id=principal_id)
            raise Forbidden(f"You can only modify {kind}s you created")

        return resource


class ReviewConstraintEnforcer:
    """Rating bounds and the one-review-per-user-per-book rule."""

    def __init__(self, store):
        self.store = store

    async def check_new_review(self, payload: Mapping[str, Any], principal_id: str) -> ReviewData:
        """
        Validate a review creation request.

        Checks run in order: book reference present, book exists, no prior
        review by this principal, then rating and text bounds.

        Returns:
            Validated ReviewData ready for insertion

        Raises:
            ValidationFailed, NotFound, Conflict
        """
        book_id = payload.get("bookId", payload.get("book_id"))
        if not isinstance(book_id, str) or not book_id.strip():
            raise ValidationFailed(["bookId"], detail="bookId is required")
        book_id = book_id.strip()

        if await self.store.get_book(book_id) is None:
            raise NotFound("Book not found")

        if await self.store.find_review_by_user(book_id, principal_id) is not None:
            raise Conflict("You have already reviewed this book. Please update your existing review.")

        try:
            return ReviewData.model_validate({**payload, "bookId": book_id})
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e)

    @staticmethod
    def check_review_update(payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate the supplied subset of rating and review text.

        Returns:
            Changes keyed by stored field name

        Raises:
            ValidationFailed: If a bound is violated or nothing would change
        """
        try:
            update = ReviewUpdate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed.from_pydantic(e)

        changes = update.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationFailed(["rating", "reviewText"],
                                   detail="Provide a rating or review text to update")
        return changes
