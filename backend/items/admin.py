from django.contrib import admin

from .models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "price_per_day", "deposit", "status", "cleaning_buffer_days")
    list_filter = ("status",)
    search_fields = ("title", "owner__username", "owner__email")
    ordering = ("-created_at",)
