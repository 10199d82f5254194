from __future__ import annotations

import re

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import HostRentalRateLog

User = get_user_model()
PHONE_CLEAN_RE = re.compile(r"[^\d+]+")


class ProfileSerializer(serializers.ModelSerializer):
    """Profile of the authenticated user, including host reputation fields."""

    profile_complete = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = (
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "phone",
            "address",
            "city",
            "district",
            "role",
            "rental_rate",
            "rental_badge",
            "rental_rate_updated_at",
            "rating",
            "review_count",
            "profile_complete",
        )
        read_only_fields = (
            "id",
            "username",
            "role",
            "rental_rate",
            "rental_badge",
            "rental_rate_updated_at",
            "rating",
            "review_count",
            "profile_complete",
        )

    def get_profile_complete(self, user) -> bool:
        return user.has_complete_profile()

    def validate_phone(self, value: str) -> str:
        cleaned = PHONE_CLEAN_RE.sub("", (value or "").strip())
        if value and len(cleaned.lstrip("+")) < 7:
            raise serializers.ValidationError("Enter a valid phone number.")
        return cleaned

    def validate_address(self, value: str) -> str:
        return (value or "").strip()


class HostRentalRateLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = HostRentalRateLog
        fields = (
            "id",
            "host",
            "rental",
            "event_type",
            "delta",
            "rate_before",
            "rate_after",
            "created_at",
        )
        read_only_fields = fields
