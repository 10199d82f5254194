from __future__ import annotations

from django.db import models
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.response import Response

from rentals.api import error_response, validation_response
from rentals.domain import RentalError

from .models import Review
from .serializers import ReviewCreateSerializer, ReviewSerializer
from .services import submit_review


class ReviewViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Allow rental participants to create and view reviews."""

    serializer_class = ReviewSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        if not user.is_authenticated:
            return Review.objects.none()

        qs = Review.objects.select_related("reviewer").filter(
            models.Q(reviewer=user) | models.Q(reviewee=user, is_visible=True)
        )

        rental_param = self.request.query_params.get("rental")
        if rental_param:
            try:
                qs = qs.filter(rental_id=int(rental_param))
            except (TypeError, ValueError):
                return qs.none()

        type_param = self.request.query_params.get("review_type")
        if type_param in Review.ReviewType.values:
            qs = qs.filter(review_type=type_param)

        return qs

    def create(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        data = serializer.validated_data
        try:
            review = submit_review(
                reviewer=request.user,
                rental_id=data["rental"],
                rating=data["rating"],
                comment=data.get("comment", ""),
            )
        except RentalError as exc:
            return error_response(exc)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)
