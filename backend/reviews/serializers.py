from __future__ import annotations

from rest_framework import serializers

from .models import Review


class ReviewSerializer(serializers.ModelSerializer):
    reviewer_username = serializers.ReadOnlyField(source="reviewer.username")

    class Meta:
        model = Review
        fields = (
            "id",
            "rental",
            "reviewer",
            "reviewer_username",
            "reviewee",
            "review_type",
            "rating",
            "comment",
            "is_visible",
            "created_at",
        )
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    rental = serializers.IntegerField(min_value=1)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, max_length=2000)
