"""
Tests for ownership and review constraints.
"""

import pytest

from catalog.errors import Conflict, Forbidden, NotFound, ValidationFailed
from catalog.guards import AccessDecision, OwnershipGuard, ReviewConstraintEnforcer
from catalog.models import ReviewData


class TestOwnershipGuard:
    """Test cases for OwnershipGuard."""

    def test_owner_is_authorized(self):
        assert OwnershipGuard.decide("user-1", "user-1") is AccessDecision.AUTHORIZED

    def test_other_principal_is_forbidden(self):
        assert OwnershipGuard.decide("user-1", "user-2") is AccessDecision.FORBIDDEN

    def test_missing_owner_is_forbidden(self):
        assert OwnershipGuard.decide(None, "user-1") is AccessDecision.FORBIDDEN

    @pytest.mark.asyncio
    async def test_authorize_returns_resource(self, stored_book, owner_id):
        assert OwnershipGuard().authorize(stored_book, owner_id, "book") is stored_book

    def test_authorize_missing_resource(self, owner_id):
        with pytest.raises(NotFound) as exc_info:
            OwnershipGuard().authorize(None, owner_id, "book")

        assert exc_info.value.detail == "Book not found"

    @pytest.mark.asyncio
    async def test_authorize_non_owner(self, stored_book, other_id):
        with pytest.raises(Forbidden):
            OwnershipGuard().authorize(stored_book, other_id, "book")

    @pytest.mark.asyncio
    async def test_authorize_review_by_user_field(self, stored_review, owner_id, other_id):
        guard = OwnershipGuard()

        assert guard.authorize(stored_review, other_id, "review", owner_field="user_id") is stored_review
        with pytest.raises(Forbidden):
            guard.authorize(stored_review, owner_id, "review", owner_field="user_id")


class TestReviewConstraintEnforcer:
    """Test cases for ReviewConstraintEnforcer."""

    @pytest.mark.asyncio
    async def test_valid_review(self, store, stored_book, owner_id):
        enforcer = ReviewConstraintEnforcer(store)

        data = await enforcer.check_new_review(
            {"bookId": stored_book.id, "rating": 4, "reviewText": "Bleak but brilliant."},
            owner_id
        )

        assert isinstance(data, ReviewData)
        assert data.book_id == stored_book.id
        assert data.rating == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"bookId": ""}, {"bookId": "   "}, {"bookId": 42}])
    async def test_missing_book_reference(self, store, owner_id, payload):
        with pytest.raises(ValidationFailed) as exc_info:
            await ReviewConstraintEnforcer(store).check_new_review(
                {**payload, "rating": 4, "reviewText": "Bleak but brilliant."}, owner_id
            )

        assert exc_info.value.fields == ["bookId"]

    @pytest.mark.asyncio
    async def test_unknown_book(self, store, owner_id):
        with pytest.raises(NotFound):
            await ReviewConstraintEnforcer(store).check_new_review(
                {"bookId": "64b7f0c2a1e4d5f6a7b8c9ff", "rating": 4, "reviewText": "Bleak but brilliant."},
                owner_id
            )

    @pytest.mark.asyncio
    async def test_second_review_conflicts(self, store, stored_review, other_id):
        with pytest.raises(Conflict) as exc_info:
            await ReviewConstraintEnforcer(store).check_new_review(
                {"bookId": stored_review.book_id, "rating": 2, "reviewText": "Changed my mind entirely."},
                other_id
            )

        assert "already reviewed" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_conflict_checked_before_bounds(self, store, stored_review, other_id):
        """A duplicate is reported even when the new payload is also invalid."""
        with pytest.raises(Conflict):
            await ReviewConstraintEnforcer(store).check_new_review(
                {"bookId": stored_review.book_id, "rating": 9, "reviewText": "short"},
                other_id
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, "five", None])
    async def test_rating_out_of_bounds(self, store, stored_book, owner_id, rating):
        with pytest.raises(ValidationFailed) as exc_info:
            await ReviewConstraintEnforcer(store).check_new_review(
                {"bookId": stored_book.id, "rating": rating, "reviewText": "Bleak but brilliant."},
                owner_id
            )

        assert exc_info.value.fields == ["rating"]

    @pytest.mark.asyncio
    async def test_review_text_bounds(self, store, stored_book, owner_id):
        enforcer = ReviewConstraintEnforcer(store)

        for text in ("too short", "x" * 1001):
            with pytest.raises(ValidationFailed) as exc_info:
                await enforcer.check_new_review(
                    {"bookId": stored_book.id, "rating": 3, "reviewText": text}, owner_id
                )
            assert exc_info.value.fields == ["reviewText"]

    def test_review_update_changes(self):
        changes = ReviewConstraintEnforcer.check_review_update({"rating": 2})

        assert changes == {"rating": 2}

    def test_review_update_text(self):
        changes = ReviewConstraintEnforcer.check_review_update({"reviewText": "Grew on me over time."})

        assert changes == {"review_text": "Grew on me over time."}

    def test_empty_review_update_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            ReviewConstraintEnforcer.check_review_update({})

        assert exc_info.value.fields == ["rating", "reviewText"]

    @pytest.mark.parametrize("payload,field", [
        ({"rating": 7}, "rating"),
        ({"rating": None}, "rating"),
        ({"reviewText": "meh"}, "reviewText"),
    ])
    def test_review_update_bounds(self, payload, field):
        with pytest.raises(ValidationFailed) as exc_info:
            ReviewConstraintEnforcer.check_review_update(payload)

        assert exc_info.value.fields == [field]
