"""Celery tasks for rentals."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications import tasks as notification_tasks

from .models import Rental

logger = logging.getLogger(__name__)


def _cancel_pending(rental_ids: list[int], now: datetime) -> list[int]:
    """
    Cancel the still-pending rentals among ``rental_ids`` and return the ids this call changed.

    Rows another sweep already cancelled are left alone and not returned, so each
    expiry is reported exactly once.
    """
    if not rental_ids:
        return []
    Rental.objects.filter(pk__in=rental_ids, status=Rental.Status.PENDING).update(
        status=Rental.Status.CANCELLED,
        cancelled_by=Rental.CancelledBy.SYSTEM,
        updated_at=now,
    )
    return list(
        Rental.objects.filter(
            pk__in=rental_ids,
            status=Rental.Status.CANCELLED,
            cancelled_by=Rental.CancelledBy.SYSTEM,
            updated_at=now,
        )
        .order_by("id")
        .values_list("id", flat=True)
    )


@shared_task(name="rentals.sweep_overdue_rentals")
def sweep_overdue_rentals() -> int:
    """
    Cancel pending requests the owner never answered.

    Only ``pending`` rentals older than ``RENTAL_PENDING_EXPIRY_DAYS`` are touched.
    Rows locked by a concurrent sweep are skipped and the update is conditional on
    the status, so overlapping runs cancel and notify each rental at most once.

    Returns the number of rentals cancelled by this run.
    """
    now = timezone.now()
    cutoff = now - timedelta(days=settings.RENTAL_PENDING_EXPIRY_DAYS)

    with transaction.atomic():
        stale_ids = list(
            Rental.objects.select_for_update(skip_locked=True)
            .filter(status=Rental.Status.PENDING, created_at__lt=cutoff)
            .order_by("id")
            .values_list("id", flat=True)
        )
        cancelled_ids = _cancel_pending(stale_ids, now)

    if cancelled_ids:
        logger.info("rentals: sweep cancelled %s stale pending rentals", len(cancelled_ids))

    for rental_id in cancelled_ids:
        try:
            notification_tasks.send_rental_expired_email.delay(rental_id)
        except Exception:
            logger.info(
                "notifications: failed to queue rental_expired_email",
                extra={"rental_id": rental_id},
                exc_info=True,
            )

    return len(cancelled_ids)
