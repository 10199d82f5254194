from django.contrib import admin

from .models import Rental


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "item",
        "renter",
        "owner",
        "start_date",
        "end_date",
        "total_amount",
        "status",
        "created_at",
    )
    list_filter = ("status", "cancelled_by")
    search_fields = ("item__title", "renter__username", "owner__username")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    # Status changes go through the lifecycle services, not the admin form.
    readonly_fields = ("status", "owner", "rejection_reason", "cancelled_by", "created_at")
