"""Host trust score (rental rate) adjustments."""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from .models import RENTAL_RATE_MAX, RENTAL_RATE_MIN, HostRentalRateLog

logger = logging.getLogger(__name__)
User = get_user_model()

ELITE_RATE = 100
RECOMMENDED_ABOVE = 95


def clamp_rate(value: int) -> int:
    return max(RENTAL_RATE_MIN, min(RENTAL_RATE_MAX, value))


def badge_for_rate(rate: int) -> str:
    """Derive the badge tier shown to renters from a rental rate."""
    if rate == ELITE_RATE:
        return User.RentalBadge.ELITE
    if rate > RECOMMENDED_ABOVE:
        return User.RentalBadge.RECOMMENDED
    return User.RentalBadge.NONE


def adjust_host_rental_rate(
    *,
    host_id: int,
    delta: int,
    rental,
    event_type: str,
) -> HostRentalRateLog:
    """
    Apply ``delta`` to the host's rental rate and append an audit log row.

    Callers must already be inside the transaction of the lifecycle transition
    that triggered the adjustment; the host row is locked until it commits.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("adjust_host_rental_rate must run inside transaction.atomic()")

    host = User.objects.select_for_update().get(pk=host_id)
    rate_before = host.rental_rate
    if rate_before is None:
        rate_before = settings.HOST_RENTAL_RATE_DEFAULT
    rate_after = clamp_rate(rate_before + delta)

    host.rental_rate = rate_after
    host.rental_badge = badge_for_rate(rate_after)
    host.rental_rate_updated_at = timezone.now()
    host.save(update_fields=["rental_rate", "rental_badge", "rental_rate_updated_at"])

    entry = HostRentalRateLog.objects.create(
        host=host,
        rental=rental,
        event_type=event_type,
        delta=delta,
        rate_before=rate_before,
        rate_after=rate_after,
    )
    logger.info(
        "trust: host %s rate %s -> %s (%s)",
        host_id,
        rate_before,
        rate_after,
        event_type,
        extra={"rental_id": getattr(rental, "id", None)},
    )
    return entry
