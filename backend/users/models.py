from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

RENTAL_RATE_MIN = 0
RENTAL_RATE_MAX = 100


def default_rental_rate() -> int:
    return getattr(settings, "HOST_RENTAL_RATE_DEFAULT", 85)


class User(AbstractUser):
    """Primary user object augmented with profile and host reputation fields."""

    class Role(models.TextChoices):
        BASIC = "basic", "Basic"
        ADMIN = "admin", "Admin"

    class RentalBadge(models.TextChoices):
        ELITE = "elite", "Elite"
        RECOMMENDED = "recommended", "Recommended"
        NONE = "none", "None"

    phone = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Contact phone number; required before renting.",
    )
    address = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Street address; required before renting.",
    )
    city = models.CharField(max_length=120, blank=True, default="")
    district = models.CharField(max_length=120, blank=True, default="")
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.BASIC)

    rental_rate = models.PositiveSmallIntegerField(
        default=default_rental_rate,
        validators=[MinValueValidator(RENTAL_RATE_MIN), MaxValueValidator(RENTAL_RATE_MAX)],
        help_text="Host trust score, clamped to [0, 100].",
    )
    rental_badge = models.CharField(
        max_length=16,
        choices=RentalBadge.choices,
        default=RentalBadge.NONE,
    )
    rental_rate_updated_at = models.DateTimeField(null=True, blank=True)

    rating = models.FloatField(default=0)
    review_count = models.PositiveIntegerField(default=0)

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_superuser

    def has_complete_profile(self) -> bool:
        """Return True when the renter-facing contact details are filled in."""
        return bool((self.phone or "").strip()) and bool((self.address or "").strip())


class HostRentalRateLog(models.Model):
    """Immutable audit record for every host trust score adjustment."""

    class EventType(models.TextChoices):
        HOST_REJECTED = "host_rejected", "Host rejected"
        RENTAL_COMPLETED = "rental_completed", "Rental completed"

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="rental_rate_logs",
        on_delete=models.CASCADE,
    )
    rental = models.ForeignKey(
        "rentals.Rental",
        related_name="rate_logs",
        on_delete=models.CASCADE,
    )
    event_type = models.CharField(max_length=32, choices=EventType.choices)
    delta = models.SmallIntegerField()
    rate_before = models.PositiveSmallIntegerField()
    rate_after = models.PositiveSmallIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=("host", "created_at"), name="rate_log_host_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.event_type} {self.delta:+d} for host {self.host_id} ({self.rate_before}->{self.rate_after})"
