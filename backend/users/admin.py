from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import HostRentalRateLog, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = (
        "username",
        "email",
        "phone",
        "role",
        "rental_rate",
        "rental_badge",
        "rating",
        "is_active",
    )
    list_filter = BaseUserAdmin.list_filter + ("role", "rental_badge")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Role", {"fields": ("role",)}),
        ("Address", {"fields": ("phone", "address", "city", "district")}),
        (
            "Reputation",
            {
                "fields": (
                    "rental_rate",
                    "rental_badge",
                    "rental_rate_updated_at",
                    "rating",
                    "review_count",
                )
            },
        ),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Address", {"fields": ("phone", "address", "city", "district")}),
    )
    readonly_fields = (
        "rental_rate",
        "rental_badge",
        "rental_rate_updated_at",
        "rating",
        "review_count",
    )


@admin.register(HostRentalRateLog)
class HostRentalRateLogAdmin(admin.ModelAdmin):
    list_display = ("host", "rental", "event_type", "delta", "rate_before", "rate_after", "created_at")
    list_filter = ("event_type", "created_at")
    search_fields = ("host__username", "host__email")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
