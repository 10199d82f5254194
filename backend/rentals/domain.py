"""Domain helpers for rental availability, validation and state transitions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from django.db import models

from items.models import Item

from .models import Rental

# Statuses that hold their date range exclusively against new bookings.
OCCUPYING_STATUSES = frozenset(
    {
        Rental.Status.PENDING,
        Rental.Status.APPROVED,
        Rental.Status.ONGOING,
        Rental.Status.BLOCKED,
        Rental.Status.COMPLETED,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        Rental.Status.REJECTED,
        Rental.Status.CANCELLED,
        Rental.Status.COMPLETED,
        Rental.Status.BLOCKED,
    }
)

TRANSITIONS: dict[str, frozenset[str]] = {
    Rental.Status.PENDING: frozenset(
        {Rental.Status.APPROVED, Rental.Status.REJECTED, Rental.Status.CANCELLED}
    ),
    Rental.Status.APPROVED: frozenset(
        {Rental.Status.ONGOING, Rental.Status.COMPLETED, Rental.Status.CANCELLED}
    ),
    Rental.Status.ONGOING: frozenset({Rental.Status.COMPLETED, Rental.Status.CANCELLED}),
    Rental.Status.REJECTED: frozenset(),
    Rental.Status.CANCELLED: frozenset(),
    Rental.Status.COMPLETED: frozenset(),
    Rental.Status.BLOCKED: frozenset(),
}


class ErrorCode(models.TextChoices):
    NOT_FOUND = "NOT_FOUND"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    ITEM_UNAVAILABLE = "ITEM_UNAVAILABLE"
    FORBIDDEN = "FORBIDDEN"
    SELF_BOOKING_FORBIDDEN = "SELF_BOOKING_FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    DATE_CONFLICT = "DATE_CONFLICT"
    PROFILE_INCOMPLETE = "PROFILE_INCOMPLETE"
    ALREADY_REVIEWED = "ALREADY_REVIEWED"
    VALIDATION = "VALIDATION"


class RentalError(Exception):
    """A precondition failure the caller is expected to present, not crash on."""

    def __init__(self, code: str, message: str = ""):
        self.code = ErrorCode(code)
        self.message = message or self.code.label
        super().__init__(f"{self.code}: {self.message}")


@dataclass(frozen=True)
class BlockedRange:
    start: date
    end: date
    kind: str

    BOOKED = "booked"
    CLEANING = "cleaning"

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat(), "kind": self.kind}


def sources_for(target: str) -> frozenset[str]:
    """Return every status that may legally move to ``target``."""
    return frozenset(source for source, targets in TRANSITIONS.items() if target in targets)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def assert_transition(rental: Rental, target: str) -> None:
    """Raise INVALID_STATE unless the rental may move to ``target``."""
    if not can_transition(rental.status, target):
        raise RentalError(
            ErrorCode.INVALID_STATE,
            f"Cannot move a {rental.status} rental to {target}.",
        )


def inclusive_days(start_date: date, end_date: date) -> int:
    """Number of calendar days in the inclusive range."""
    return (end_date - start_date).days + 1


def validate_rental_dates(start_date: date | None, end_date: date | None) -> None:
    if not start_date or not end_date:
        raise RentalError(ErrorCode.VALIDATION, "Start and end dates are required.")
    if start_date > end_date:
        raise RentalError(ErrorCode.VALIDATION, "End date must not be before start date.")


def overlaps(
    candidate_start: date,
    candidate_end: date,
    range_start: date,
    range_end: date,
) -> bool:
    """Two inclusive ranges conflict unless one ends before the other starts."""
    return not (candidate_end < range_start or candidate_start > range_end)


def ranges_for_rentals(
    rentals: Iterable[Rental],
    cleaning_buffer_days: int,
) -> list[BlockedRange]:
    ranges: list[BlockedRange] = []
    for rental in rentals:
        if rental.status not in OCCUPYING_STATUSES:
            continue
        ranges.append(BlockedRange(rental.start_date, rental.end_date, BlockedRange.BOOKED))
        # Owner self-blocks never generate a buffer of their own.
        if cleaning_buffer_days > 0 and rental.status != Rental.Status.BLOCKED:
            ranges.append(
                BlockedRange(
                    rental.end_date + timedelta(days=1),
                    rental.end_date + timedelta(days=cleaning_buffer_days),
                    BlockedRange.CLEANING,
                )
            )
    ranges.sort(key=lambda r: (r.start, r.end, r.kind))
    return ranges


def compute_blocked_ranges(item: Item) -> list[BlockedRange]:
    """Return the date ranges currently unavailable for booking on ``item``."""
    rentals = (
        Rental.objects.filter(item=item, status__in=OCCUPYING_STATUSES)
        .only("start_date", "end_date", "status")
        .order_by("start_date", "end_date")
    )
    return ranges_for_rentals(rentals, item.cleaning_buffer_days or 0)


def find_conflict(
    start_date: date,
    end_date: date,
    blocked: Iterable[BlockedRange],
) -> Optional[BlockedRange]:
    for blocked_range in blocked:
        if overlaps(start_date, end_date, blocked_range.start, blocked_range.end):
            return blocked_range
    return None


def ensure_no_conflict(item: Item, start_date: date, end_date: date) -> None:
    """Raise DATE_CONFLICT when the candidate range hits any blocked range."""
    conflict = find_conflict(start_date, end_date, compute_blocked_ranges(item))
    if conflict is not None:
        if conflict.kind == BlockedRange.CLEANING:
            message = "Requested dates fall within the item's cleaning period."
        else:
            message = "Requested dates are not available for this item."
        raise RentalError(ErrorCode.DATE_CONFLICT, message)
