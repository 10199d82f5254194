import threading
from datetime import date, timedelta

import pytest
from django.db import connection

from items.models import Item
from notifications import tasks as notification_tasks
from rentals import services
from rentals.domain import ErrorCode, RentalError
from rentals.models import Rental
from users.models import HostRentalRateLog

pytestmark = pytest.mark.django_db


def _create(renter, item, start, end, **overrides):
    params = {
        "renter": renter,
        "item_id": item.id,
        "start_date": start,
        "end_date": end,
        "total_days": (end - start).days + 1,
        "total_amount": 100,
    }
    params.update(overrides)
    return services.create_rental(**params)


def test_create_rental_is_pending_and_notifies_both_parties(renter_user, item, spy_task):
    owner_calls = spy_task(notification_tasks.send_rental_request_email)
    renter_calls = spy_task(notification_tasks.send_rental_received_email)

    rental = _create(renter_user, item, date(2030, 5, 1), date(2030, 5, 3), message="Weekend trip")

    assert rental.status == Rental.Status.PENDING
    assert rental.owner_id == item.owner_id
    assert rental.total_days == 3
    assert owner_calls == [{"args": (item.owner_id, rental.id), "kwargs": {}}]
    assert renter_calls == [{"args": (renter_user.id, rental.id), "kwargs": {}}]


def test_create_rental_survives_notification_failure(renter_user, item, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("broker down")

    monkeypatch.setattr(notification_tasks.send_rental_request_email, "delay", _boom)
    monkeypatch.setattr(notification_tasks.send_rental_received_email, "delay", _boom)

    rental = _create(renter_user, item, date(2030, 5, 1), date(2030, 5, 1))

    assert Rental.objects.filter(pk=rental.pk, status=Rental.Status.PENDING).exists()


@pytest.mark.parametrize(
    ("overrides", "code"),
    [
        ({"end_date": date(2030, 4, 30)}, ErrorCode.VALIDATION),
        ({"total_days": 5}, ErrorCode.VALIDATION),
        ({"total_amount": -1}, ErrorCode.VALIDATION),
        ({"item_id": 999999}, ErrorCode.ITEM_NOT_FOUND),
    ],
)
def test_create_rental_rejects_bad_input(renter_user, item, overrides, code):
    with pytest.raises(RentalError) as excinfo:
        _create(renter_user, item, date(2030, 5, 1), date(2030, 5, 2), **overrides)
    assert excinfo.value.code == code
    assert not Rental.objects.exists()


def test_create_rental_requires_complete_profile(incomplete_user, item):
    with pytest.raises(RentalError) as excinfo:
        _create(incomplete_user, item, date(2030, 5, 1), date(2030, 5, 2))
    assert excinfo.value.code == ErrorCode.PROFILE_INCOMPLETE


def test_create_rental_on_inactive_item(renter_user, item):
    item.status = Item.Status.INACTIVE
    item.save(update_fields=["status"])

    with pytest.raises(RentalError) as excinfo:
        _create(renter_user, item, date(2030, 5, 1), date(2030, 5, 2))
    assert excinfo.value.code == ErrorCode.ITEM_UNAVAILABLE


def test_owner_cannot_book_own_item(owner_user, item):
    with pytest.raises(RentalError) as excinfo:
        _create(owner_user, item, date(2030, 5, 1), date(2030, 5, 2))
    assert excinfo.value.code == ErrorCode.SELF_BOOKING_FORBIDDEN


def test_overlapping_request_conflicts(renter_user, other_user, item, rental_factory):
    rental_factory(start_date=date(2030, 5, 1), end_date=date(2030, 5, 5))

    with pytest.raises(RentalError) as excinfo:
        _create(other_user, item, date(2030, 5, 5), date(2030, 5, 7))
    assert excinfo.value.code == ErrorCode.DATE_CONFLICT

    rental = _create(other_user, item, date(2030, 5, 6), date(2030, 5, 7))
    assert rental.status == Rental.Status.PENDING


def test_cleaning_buffer_blocks_follow_up_request(renter_user, other_user, item, rental_factory):
    item.cleaning_buffer_days = 2
    item.save(update_fields=["cleaning_buffer_days"])
    rental_factory(
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 5),
        status=Rental.Status.APPROVED,
    )

    with pytest.raises(RentalError) as excinfo:
        _create(other_user, item, date(2024, 1, 6), date(2024, 1, 8))
    assert excinfo.value.code == ErrorCode.DATE_CONFLICT


def test_released_dates_can_be_rebooked(other_user, item, rental_factory):
    rental_factory(
        start_date=date(2030, 6, 1),
        end_date=date(2030, 6, 3),
        status=Rental.Status.REJECTED,
    )

    rental = _create(other_user, item, date(2030, 6, 1), date(2030, 6, 3))
    assert rental.status == Rental.Status.PENDING


def test_approve_then_complete_adjusts_trust(owner_user, rental_factory, spy_task):
    status_calls = spy_task(notification_tasks.send_rental_status_email)
    rental = rental_factory(start_date=date(2030, 7, 1), end_date=date(2030, 7, 2))

    services.approve_rental(actor=owner_user, rental_id=rental.id)
    services.complete_rental(actor=owner_user, rental_id=rental.id)

    rental.refresh_from_db()
    owner_user.refresh_from_db()
    assert rental.status == Rental.Status.COMPLETED
    assert owner_user.rental_rate == 87
    log = HostRentalRateLog.objects.get(rental=rental)
    assert log.event_type == HostRentalRateLog.EventType.RENTAL_COMPLETED
    assert (log.rate_before, log.rate_after, log.delta) == (85, 87, 2)
    assert [call["args"][2] for call in status_calls] == [
        Rental.Status.APPROVED,
        Rental.Status.COMPLETED,
    ]


def test_reject_records_reason_and_penalty(owner_user, rental_factory):
    rental = rental_factory(start_date=date(2030, 7, 1), end_date=date(2030, 7, 2))

    services.reject_rental(actor=owner_user, rental_id=rental.id, reason="Away that week")

    rental.refresh_from_db()
    owner_user.refresh_from_db()
    assert rental.status == Rental.Status.REJECTED
    assert rental.rejection_reason == "Away that week"
    assert owner_user.rental_rate == 80
    logs = HostRentalRateLog.objects.filter(rental=rental)
    assert logs.count() == 1
    assert logs.get().delta == -5


def test_reject_clamps_rate_at_zero(owner_user, rental_factory):
    owner_user.rental_rate = 3
    owner_user.save(update_fields=["rental_rate"])
    rental = rental_factory(start_date=date(2030, 7, 1), end_date=date(2030, 7, 2))

    services.reject_rental(actor=owner_user, rental_id=rental.id)

    log = HostRentalRateLog.objects.get(rental=rental)
    assert (log.rate_before, log.rate_after) == (3, 0)


def test_only_owner_may_decide(renter_user, rental_factory):
    rental = rental_factory(start_date=date(2030, 7, 1), end_date=date(2030, 7, 2))

    with pytest.raises(RentalError) as excinfo:
        services.approve_rental(actor=renter_user, rental_id=rental.id)

    assert excinfo.value.code == ErrorCode.FORBIDDEN
    rental.refresh_from_db()
    assert rental.status == Rental.Status.PENDING


def test_complete_rejected_rental_is_invalid_and_side_effect_free(owner_user, rental_factory):
    rental = rental_factory(
        start_date=date(2030, 7, 1),
        end_date=date(2030, 7, 2),
        status=Rental.Status.REJECTED,
    )

    with pytest.raises(RentalError) as excinfo:
        services.complete_rental(actor=owner_user, rental_id=rental.id)

    assert excinfo.value.code == ErrorCode.INVALID_STATE
    owner_user.refresh_from_db()
    assert owner_user.rental_rate == 85
    assert not HostRentalRateLog.objects.exists()


def test_stale_status_loses_conditional_update(owner_user, rental_factory):
    rental = rental_factory(start_date=date(2030, 7, 1), end_date=date(2030, 7, 2))
    stale = Rental.objects.get(pk=rental.pk)
    Rental.objects.filter(pk=rental.pk).update(status=Rental.Status.REJECTED)

    with pytest.raises(RentalError) as excinfo:
        services._apply_transition(stale, Rental.Status.APPROVED)

    assert excinfo.value.code == ErrorCode.INVALID_STATE


def test_missing_rental(owner_user):
    with pytest.raises(RentalError) as excinfo:
        services.approve_rental(actor=owner_user, rental_id=424242)
    assert excinfo.value.code == ErrorCode.NOT_FOUND


def test_start_then_complete(owner_user, rental_factory):
    rental = rental_factory(
        start_date=date(2030, 7, 1),
        end_date=date(2030, 7, 2),
        status=Rental.Status.APPROVED,
    )

    services.start_rental(actor=owner_user, rental_id=rental.id)
    rental = services.complete_rental(actor=owner_user, rental_id=rental.id)

    assert rental.status == Rental.Status.COMPLETED


def test_cancel_requires_admin(owner_user, admin_user, rental_factory):
    rental = rental_factory(
        start_date=date(2030, 7, 1),
        end_date=date(2030, 7, 2),
        status=Rental.Status.APPROVED,
    )

    with pytest.raises(RentalError) as excinfo:
        services.cancel_rental(actor=owner_user, rental_id=rental.id)
    assert excinfo.value.code == ErrorCode.FORBIDDEN

    services.cancel_rental(actor=admin_user, rental_id=rental.id)
    rental.refresh_from_db()
    assert rental.status == Rental.Status.CANCELLED
    assert rental.cancelled_by == Rental.CancelledBy.ADMIN


def test_update_rental_status_goes_through_transition_table(admin_user, rental_factory):
    rental = rental_factory(
        start_date=date(2030, 7, 1),
        end_date=date(2030, 7, 2),
        status=Rental.Status.COMPLETED,
    )

    with pytest.raises(RentalError) as excinfo:
        services.update_rental_status(
            actor=admin_user,
            rental_id=rental.id,
            status=Rental.Status.PENDING,
        )
    assert excinfo.value.code == ErrorCode.INVALID_STATE


def test_block_dates_holds_calendar(owner_user, renter_user, item):
    blocked = services.block_dates(
        actor=owner_user,
        item_id=item.id,
        start_date=date(2030, 8, 1),
        end_date=date(2030, 8, 4),
    )

    assert blocked.status == Rental.Status.BLOCKED
    assert blocked.renter_id == owner_user.id
    assert blocked.total_amount == 0
    assert blocked.total_days == 4
    with pytest.raises(RentalError) as excinfo:
        _create(renter_user, item, date(2030, 8, 4), date(2030, 8, 6))
    assert excinfo.value.code == ErrorCode.DATE_CONFLICT


def test_block_dates_forbidden_for_non_owner(renter_user, item):
    with pytest.raises(RentalError) as excinfo:
        services.block_dates(
            actor=renter_user,
            item_id=item.id,
            start_date=date(2030, 8, 1),
            end_date=date(2030, 8, 4),
        )
    assert excinfo.value.code == ErrorCode.FORBIDDEN


def test_invite_review_only_after_completion(owner_user, rental_factory, spy_task):
    calls = spy_task(notification_tasks.send_review_invite_email)
    pending = rental_factory(start_date=date(2030, 9, 1), end_date=date(2030, 9, 2))
    done = rental_factory(
        start_date=date(2030, 9, 5),
        end_date=date(2030, 9, 6),
        status=Rental.Status.COMPLETED,
    )

    with pytest.raises(RentalError) as excinfo:
        services.invite_review(actor=owner_user, rental_id=pending.id)
    assert excinfo.value.code == ErrorCode.INVALID_STATE

    services.invite_review(actor=owner_user, rental_id=done.id)
    assert calls == [{"args": (done.id,), "kwargs": {}}]


@pytest.mark.django_db(transaction=True)
def test_concurrent_overlapping_requests_admit_one(renter_user, other_user, item, spy_task):
    spy_task(notification_tasks.send_rental_request_email)
    spy_task(notification_tasks.send_rental_received_email)
    start = date.today() + timedelta(days=30)
    end = start + timedelta(days=2)
    outcomes = []
    barrier = threading.Barrier(2)

    def _attempt(user):
        barrier.wait()
        try:
            _create(user, item, start, end)
            outcomes.append("ok")
        except RentalError as exc:
            outcomes.append(exc.code)
        finally:
            connection.close()

    threads = [threading.Thread(target=_attempt, args=(u,)) for u in (renter_user, other_user)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == sorted(["ok", ErrorCode.DATE_CONFLICT])
    assert Rental.objects.filter(item=item).count() == 1
