from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from rentals.domain import ErrorCode, RentalError
from rentals.models import Rental

from .models import Review

logger = logging.getLogger(__name__)
User = get_user_model()


def update_user_review_stats(user_id: int) -> None:
    """Recalculate rating and review_count from the reviewee's full set of visible reviews."""
    agg = Review.objects.filter(reviewee_id=user_id, is_visible=True).aggregate(
        avg=Avg("rating"),
        count=Count("id"),
    )
    User.objects.filter(pk=user_id).update(
        rating=float(agg.get("avg") or 0),
        review_count=agg.get("count") or 0,
    )


def submit_review(*, reviewer, rental_id: int, rating, comment: str = "") -> Review:
    """Record one review per party for a completed rental and refresh the reviewee's stats."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise RentalError(ErrorCode.VALIDATION, "Rating must be between 1 and 5.")

    rental = Rental.objects.filter(pk=rental_id).first()
    if rental is None:
        raise RentalError(ErrorCode.NOT_FOUND, "Rental not found.")
    if rental.status != Rental.Status.COMPLETED:
        raise RentalError(ErrorCode.INVALID_STATE, "Reviews are only allowed after completion.")

    reviewer_id = getattr(reviewer, "id", None)
    if reviewer_id == rental.renter_id:
        review_type = Review.ReviewType.RENTER_TO_HOST
        reviewee_id = rental.owner_id
    elif reviewer_id == rental.owner_id:
        review_type = Review.ReviewType.HOST_TO_RENTER
        reviewee_id = rental.renter_id
    else:
        raise RentalError(ErrorCode.FORBIDDEN, "You can only review your own rentals.")

    if Review.objects.filter(rental=rental, reviewer_id=reviewer_id).exists():
        raise RentalError(ErrorCode.ALREADY_REVIEWED, "You already reviewed this rental.")

    with transaction.atomic():
        # Serialize concurrent reviews of the same reviewee while the average is rebuilt.
        User.objects.select_for_update().filter(pk=reviewee_id).first()
        try:
            with transaction.atomic():
                review = Review.objects.create(
                    rental=rental,
                    reviewer_id=reviewer_id,
                    reviewee_id=reviewee_id,
                    review_type=review_type,
                    rating=rating,
                    comment=(comment or "").strip(),
                    is_visible=True,
                )
        except IntegrityError as exc:
            raise RentalError(
                ErrorCode.ALREADY_REVIEWED,
                "You already reviewed this rental.",
            ) from exc
        update_user_review_stats(reviewee_id)

    logger.info(
        "reviews: %s review %s for rental %s",
        review_type,
        review.id,
        rental.id,
    )
    return review
