from django.contrib import admin

from .models import NotificationLog


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ("type", "channel", "status", "user", "rental_id", "created_at")
    list_filter = ("channel", "status", "type")
    search_fields = ("type", "user__username", "error")
    readonly_fields = ("channel", "type", "user", "rental_id", "status", "error", "created_at")
    ordering = ("-created_at",)
