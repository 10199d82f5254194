from django.contrib import admin

from .models import Review
from .services import update_user_review_stats


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = (
        "rental",
        "reviewer",
        "reviewee",
        "review_type",
        "rating",
        "is_visible",
        "created_at",
    )
    list_filter = ("review_type", "is_visible", "rating")
    search_fields = ("reviewer__username", "reviewee__username", "comment")
    ordering = ("-created_at",)
    readonly_fields = ("rental", "reviewer", "reviewee", "review_type", "rating", "created_at")

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        # Hiding or showing a review changes the reviewee's average.
        update_user_review_stats(obj.reviewee_id)

    def delete_model(self, request, obj):
        reviewee_id = obj.reviewee_id
        super().delete_model(request, obj)
        update_user_review_stats(reviewee_id)

    def delete_queryset(self, request, queryset):
        reviewee_ids = set(queryset.values_list("reviewee_id", flat=True))
        super().delete_queryset(request, queryset)
        for reviewee_id in reviewee_ids:
            update_user_review_stats(reviewee_id)
