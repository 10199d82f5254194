from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

MAX_CLEANING_BUFFER_DAYS = 30


class Item(models.Model):
    """A rentable physical object owned by exactly one user."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        ARCHIVED = "archived", "Archived"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="items",
    )
    title = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    price_per_day = models.PositiveIntegerField(default=0)
    deposit = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    cleaning_buffer_days = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_CLEANING_BUFFER_DAYS)],
        help_text="Idle days enforced after an occupying rental ends.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(cleaning_buffer_days__lte=MAX_CLEANING_BUFFER_DAYS),
                name="item_cleaning_buffer_days_max",
            ),
        ]

    def clean(self):
        if not self.title or len(self.title.strip()) < 2:
            raise ValidationError("Title too short")
        limit = getattr(settings, "RENTAL_MAX_CLEANING_BUFFER_DAYS", MAX_CLEANING_BUFFER_DAYS)
        if self.cleaning_buffer_days and self.cleaning_buffer_days > limit:
            raise ValidationError({"cleaning_buffer_days": f"At most {limit} days."})

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"
