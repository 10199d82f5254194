from datetime import date

import pytest

from items.models import Item
from rentals.domain import (
    BlockedRange,
    ErrorCode,
    RentalError,
    can_transition,
    ensure_no_conflict,
    find_conflict,
    inclusive_days,
    overlaps,
    ranges_for_rentals,
    sources_for,
    validate_rental_dates,
)
from rentals.models import Rental


def _rental(start, end, status=Rental.Status.APPROVED):
    return Rental(start_date=start, end_date=end, status=status, total_days=inclusive_days(start, end))


@pytest.mark.parametrize(
    ("candidate", "existing", "expected"),
    [
        ((date(2024, 1, 1), date(2024, 1, 5)), (date(2024, 1, 5), date(2024, 1, 8)), True),
        ((date(2024, 1, 1), date(2024, 1, 5)), (date(2024, 1, 6), date(2024, 1, 8)), False),
        ((date(2024, 1, 3), date(2024, 1, 3)), (date(2024, 1, 1), date(2024, 1, 5)), True),
        ((date(2024, 1, 10), date(2024, 1, 12)), (date(2024, 1, 1), date(2024, 1, 9)), False),
    ],
)
def test_overlaps_is_inclusive_and_symmetric(candidate, existing, expected):
    assert overlaps(*candidate, *existing) is expected
    assert overlaps(*existing, *candidate) is expected


def test_cleaning_buffer_follows_booked_range():
    ranges = ranges_for_rentals([_rental(date(2024, 1, 1), date(2024, 1, 5))], 2)

    assert ranges == [
        BlockedRange(date(2024, 1, 1), date(2024, 1, 5), BlockedRange.BOOKED),
        BlockedRange(date(2024, 1, 6), date(2024, 1, 7), BlockedRange.CLEANING),
    ]


def test_blocked_rental_has_no_cleaning_range():
    ranges = ranges_for_rentals(
        [_rental(date(2024, 2, 1), date(2024, 2, 3), status=Rental.Status.BLOCKED)],
        3,
    )

    assert [r.kind for r in ranges] == [BlockedRange.BOOKED]


def test_released_rentals_do_not_occupy_dates():
    rentals = [
        _rental(date(2024, 3, 1), date(2024, 3, 2), status=Rental.Status.REJECTED),
        _rental(date(2024, 3, 5), date(2024, 3, 6), status=Rental.Status.CANCELLED),
        _rental(date(2024, 3, 10), date(2024, 3, 11), status=Rental.Status.COMPLETED),
    ]

    ranges = ranges_for_rentals(rentals, 0)

    assert ranges == [BlockedRange(date(2024, 3, 10), date(2024, 3, 11), BlockedRange.BOOKED)]


def test_find_conflict_returns_first_hit():
    blocked = [
        BlockedRange(date(2024, 1, 1), date(2024, 1, 5), BlockedRange.BOOKED),
        BlockedRange(date(2024, 1, 6), date(2024, 1, 7), BlockedRange.CLEANING),
    ]

    assert find_conflict(date(2024, 1, 7), date(2024, 1, 9), blocked).kind == BlockedRange.CLEANING
    assert find_conflict(date(2024, 1, 8), date(2024, 1, 9), blocked) is None


def test_transition_table():
    assert can_transition(Rental.Status.PENDING, Rental.Status.APPROVED)
    assert can_transition(Rental.Status.ONGOING, Rental.Status.COMPLETED)
    assert not can_transition(Rental.Status.REJECTED, Rental.Status.COMPLETED)
    assert not can_transition(Rental.Status.BLOCKED, Rental.Status.CANCELLED)
    assert sources_for(Rental.Status.COMPLETED) == {Rental.Status.APPROVED, Rental.Status.ONGOING}


def test_validate_rental_dates_rejects_reversed_range():
    with pytest.raises(RentalError) as excinfo:
        validate_rental_dates(date(2024, 1, 5), date(2024, 1, 1))
    assert excinfo.value.code == ErrorCode.VALIDATION


def test_single_day_rental_counts_one_day():
    assert inclusive_days(date(2024, 1, 1), date(2024, 1, 1)) == 1


@pytest.mark.django_db
def test_ensure_no_conflict_reports_cleaning_period(owner_user, rental_factory):
    item = Item.objects.create(owner=owner_user, title="Kayak", cleaning_buffer_days=2)
    rental_factory(
        item_override=item,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 5),
        status=Rental.Status.APPROVED,
    )

    with pytest.raises(RentalError) as excinfo:
        ensure_no_conflict(item, date(2024, 1, 6), date(2024, 1, 8))

    assert excinfo.value.code == ErrorCode.DATE_CONFLICT
    assert "cleaning" in excinfo.value.message
    ensure_no_conflict(item, date(2024, 1, 8), date(2024, 1, 9))
