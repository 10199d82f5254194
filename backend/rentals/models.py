"""Database models for rentals."""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from items.models import Item


class Rental(models.Model):
    """A request for, or a hold on, an inclusive date range of an item."""

    class Status(models.TextChoices):
        PENDING = "pending", "pending"
        APPROVED = "approved", "approved"
        REJECTED = "rejected", "rejected"
        ONGOING = "ongoing", "ongoing"
        COMPLETED = "completed", "completed"
        CANCELLED = "cancelled", "cancelled"
        BLOCKED = "blocked", "blocked"

    class CancelledBy(models.TextChoices):
        NONE = "", "none"
        ADMIN = "admin", "admin"
        SYSTEM = "system", "system"

    item = models.ForeignKey(
        Item,
        related_name="rentals",
        on_delete=models.CASCADE,
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="rentals_as_owner",
        on_delete=models.CASCADE,
    )
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="rentals_as_renter",
        on_delete=models.CASCADE,
    )
    start_date = models.DateField()
    end_date = models.DateField(help_text="Last rented day (inclusive).")
    total_days = models.PositiveIntegerField()
    total_amount = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    rejection_reason = models.TextField(null=True, blank=True)
    cancelled_by = models.CharField(
        max_length=16,
        choices=CancelledBy.choices,
        blank=True,
        default=CancelledBy.NONE,
    )
    message = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["item", "status", "start_date", "end_date"],
                name="rentals_ren_item_id_6c1f2e_idx",
            ),
            models.Index(fields=["renter", "status"], name="rentals_ren_renter__9b7d41_idx"),
            models.Index(fields=["owner", "status"], name="rentals_ren_owner_i_3a2c88_idx"),
            models.Index(fields=["status", "created_at"], name="rentals_ren_status_5e0f17_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(start_date__lte=F("end_date")),
                name="rental_start_not_after_end",
            ),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        return f"Rental #{self.pk} for item {self.item_id} ({self.status})"

    @property
    def is_self_block(self) -> bool:
        return self.status == self.Status.BLOCKED
