"""
Rental admission and lifecycle operations.

Every operation either returns the persisted rental or raises ``RentalError``
with a typed code. State changes happen inside ``transaction.atomic()``;
notifications are queued only after the transaction has committed and never
undo it.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from items.models import Item
from notifications import tasks as notification_tasks
from users.models import HostRentalRateLog
from users.trust import adjust_host_rental_rate

from .domain import (
    ErrorCode,
    RentalError,
    assert_transition,
    ensure_no_conflict,
    inclusive_days,
    validate_rental_dates,
)
from .models import Rental

logger = logging.getLogger(__name__)


def _queue(task, *args) -> None:
    """Queue a notification task; delivery problems are logged, never raised."""
    try:
        task.delay(*args)
    except Exception:
        logger.info(
            "notifications: could not queue %s",
            getattr(task, "name", task),
            exc_info=True,
            extra={"task_args": args},
        )


def _get_rental(rental_id: int) -> Rental:
    rental = Rental.objects.select_related("item").filter(pk=rental_id).first()
    if rental is None:
        raise RentalError(ErrorCode.NOT_FOUND, "Rental not found.")
    return rental


def _require_owner(actor, rental: Rental) -> None:
    if getattr(actor, "id", None) != rental.owner_id:
        raise RentalError(ErrorCode.FORBIDDEN, "Only the item owner can do this.")


def _require_admin(actor) -> None:
    if not getattr(actor, "is_admin", False):
        raise RentalError(ErrorCode.FORBIDDEN, "Only administrators can do this.")


def _apply_transition(rental: Rental, target: str, **fields) -> Rental:
    """
    Move ``rental`` to ``target`` with a conditional update on its observed status.

    Must run inside an atomic block. Trust adjustments for rejections and
    completions are written in the same transaction.
    """
    assert_transition(rental, target)
    now = timezone.now()
    updated = Rental.objects.filter(pk=rental.pk, status=rental.status).update(
        status=target,
        updated_at=now,
        **fields,
    )
    if not updated:
        raise RentalError(
            ErrorCode.INVALID_STATE,
            "Rental status changed while processing this request.",
        )

    if target == Rental.Status.REJECTED:
        adjust_host_rental_rate(
            host_id=rental.owner_id,
            delta=settings.HOST_REJECT_DELTA,
            rental=rental,
            event_type=HostRentalRateLog.EventType.HOST_REJECTED,
        )
    elif target == Rental.Status.COMPLETED:
        adjust_host_rental_rate(
            host_id=rental.owner_id,
            delta=settings.HOST_COMPLETE_DELTA,
            rental=rental,
            event_type=HostRentalRateLog.EventType.RENTAL_COMPLETED,
        )

    rental.status = target
    rental.updated_at = now
    for name, value in fields.items():
        setattr(rental, name, value)
    logger.info("rentals: rental %s moved to %s", rental.pk, target)
    return rental


def create_rental(
    *,
    renter,
    item_id: int,
    start_date: date,
    end_date: date,
    total_days: int,
    total_amount: int,
    message: str = "",
) -> Rental:
    """Admit a booking request as a ``pending`` rental."""
    validate_rental_dates(start_date, end_date)
    if total_days != inclusive_days(start_date, end_date):
        raise RentalError(ErrorCode.VALIDATION, "total_days does not match the date range.")
    if total_amount is None or total_amount < 0:
        raise RentalError(ErrorCode.VALIDATION, "total_amount must not be negative.")

    if not renter.has_complete_profile():
        raise RentalError(
            ErrorCode.PROFILE_INCOMPLETE,
            "Add your phone number and address before booking.",
        )

    with transaction.atomic():
        # Locking the item serializes admissions for it; conflicts are read after the lock.
        item = Item.objects.select_for_update().filter(pk=item_id).first()
        if item is None:
            raise RentalError(ErrorCode.ITEM_NOT_FOUND, "Item not found.")
        if item.status != Item.Status.ACTIVE:
            raise RentalError(ErrorCode.ITEM_UNAVAILABLE, "This item cannot be booked right now.")
        if item.owner_id == renter.id:
            raise RentalError(
                ErrorCode.SELF_BOOKING_FORBIDDEN,
                "You cannot book your own item.",
            )
        ensure_no_conflict(item, start_date, end_date)

        rental = Rental.objects.create(
            item=item,
            renter=renter,
            owner_id=item.owner_id,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            total_amount=total_amount,
            status=Rental.Status.PENDING,
            message=message or "",
        )

    logger.info(
        "rentals: created rental %s",
        rental.id,
        extra={"item_id": item.id, "renter_id": renter.id},
    )
    _queue(notification_tasks.send_rental_request_email, rental.owner_id, rental.id)
    _queue(notification_tasks.send_rental_received_email, rental.renter_id, rental.id)
    return rental


def block_dates(*, actor, item_id: int, start_date: date, end_date: date) -> Rental:
    """Withhold an item's availability with an owner self-booking."""
    validate_rental_dates(start_date, end_date)
    with transaction.atomic():
        item = Item.objects.select_for_update().filter(pk=item_id).first()
        if item is None:
            raise RentalError(ErrorCode.ITEM_NOT_FOUND, "Item not found.")
        if getattr(actor, "id", None) != item.owner_id:
            raise RentalError(ErrorCode.FORBIDDEN, "Only the item owner can block dates.")
        ensure_no_conflict(item, start_date, end_date)
        rental = Rental.objects.create(
            item=item,
            renter_id=item.owner_id,
            owner_id=item.owner_id,
            start_date=start_date,
            end_date=end_date,
            total_days=inclusive_days(start_date, end_date),
            total_amount=0,
            status=Rental.Status.BLOCKED,
        )
    logger.info("rentals: item %s blocked %s..%s", item.id, start_date, end_date)
    return rental


def approve_rental(*, actor, rental_id: int) -> Rental:
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _require_owner(actor, rental)
        _apply_transition(rental, Rental.Status.APPROVED)
    _queue(notification_tasks.send_rental_status_email, rental.renter_id, rental.id, rental.status)
    return rental


def reject_rental(*, actor, rental_id: int, reason: str = "") -> Rental:
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _require_owner(actor, rental)
        _apply_transition(rental, Rental.Status.REJECTED, rejection_reason=reason or None)
    _queue(notification_tasks.send_rental_status_email, rental.renter_id, rental.id, rental.status)
    return rental


def start_rental(*, actor, rental_id: int) -> Rental:
    """Mark an approved rental as handed over (optional step before completion)."""
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _require_owner(actor, rental)
        _apply_transition(rental, Rental.Status.ONGOING)
    return rental


def complete_rental(*, actor, rental_id: int) -> Rental:
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _require_owner(actor, rental)
        _apply_transition(rental, Rental.Status.COMPLETED)
    _queue(notification_tasks.send_rental_status_email, rental.renter_id, rental.id, rental.status)
    return rental


def cancel_rental(*, actor=None, rental_id: int, system: bool = False) -> Rental:
    """Cancel a non-terminal rental on behalf of an administrator or the system."""
    if not system:
        _require_admin(actor)
    cancelled_by = Rental.CancelledBy.SYSTEM if system else Rental.CancelledBy.ADMIN
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _apply_transition(rental, Rental.Status.CANCELLED, cancelled_by=cancelled_by)
    _queue(notification_tasks.send_rental_status_email, rental.renter_id, rental.id, rental.status)
    return rental


def update_rental_status(
    *,
    actor,
    rental_id: int,
    status: str,
    reason: Optional[str] = None,
) -> Rental:
    """Administrative status change, still bound by the transition table."""
    _require_admin(actor)
    if status not in Rental.Status.values:
        raise RentalError(ErrorCode.VALIDATION, f"Unknown status {status!r}.")
    fields: dict[str, object] = {}
    if status == Rental.Status.REJECTED:
        fields["rejection_reason"] = reason or None
    elif status == Rental.Status.CANCELLED:
        fields["cancelled_by"] = Rental.CancelledBy.ADMIN
    with transaction.atomic():
        rental = _get_rental(rental_id)
        _apply_transition(rental, status, **fields)
    _queue(notification_tasks.send_rental_status_email, rental.renter_id, rental.id, rental.status)
    return rental


def invite_review(*, actor, rental_id: int) -> Rental:
    """Let the owner nudge the renter to review a completed rental."""
    rental = _get_rental(rental_id)
    _require_owner(actor, rental)
    if rental.status != Rental.Status.COMPLETED:
        raise RentalError(ErrorCode.INVALID_STATE, "Only completed rentals can be reviewed.")
    _queue(notification_tasks.send_review_invite_email, rental.id)
    return rental
