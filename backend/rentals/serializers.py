"""Serializers for rental-related API endpoints."""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from .domain import inclusive_days
from .models import Rental


class RentalSerializer(serializers.ModelSerializer):
    """Serialize Rental instances for API responses."""

    item_title = serializers.ReadOnlyField(source="item.title")
    owner_username = serializers.ReadOnlyField(source="owner.username")
    renter_username = serializers.ReadOnlyField(source="renter.username")

    class Meta:
        model = Rental
        fields = (
            "id",
            "item",
            "item_title",
            "owner",
            "owner_username",
            "renter",
            "renter_username",
            "start_date",
            "end_date",
            "total_days",
            "total_amount",
            "status",
            "rejection_reason",
            "cancelled_by",
            "message",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["start_date"] > attrs["end_date"]:
            raise serializers.ValidationError(
                {"end_date": ["End date must not be before start date."]}
            )
        return attrs


class RentalCreateSerializer(DateRangeSerializer):
    """Validate the shape of a booking request; business rules live in services."""

    item = serializers.IntegerField(min_value=1)
    total_days = serializers.IntegerField(min_value=1, required=False)
    total_amount = serializers.IntegerField(min_value=0)
    message = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        attrs = super().validate(attrs)
        if attrs.get("total_days") is None:
            attrs["total_days"] = inclusive_days(attrs["start_date"], attrs["end_date"])
        return attrs


class BlockDatesSerializer(DateRangeSerializer):
    item = serializers.IntegerField(min_value=1)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Rental.Status.choices)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)
