"""API viewsets and permissions for rentals."""

from __future__ import annotations

import logging

from django.conf import settings
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from items.models import Item

from . import services
from .domain import ErrorCode, RentalError, compute_blocked_ranges
from .filters import RentalFilter
from .models import Rental
from .serializers import (
    BlockDatesSerializer,
    RejectSerializer,
    RentalCreateSerializer,
    RentalSerializer,
    StatusUpdateSerializer,
)
from .tasks import sweep_overdue_rentals

logger = logging.getLogger(__name__)

ERROR_HTTP_STATUS = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PROFILE_INCOMPLETE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ITEM_UNAVAILABLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.SELF_BOOKING_FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ITEM_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.DATE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_REVIEWED: status.HTTP_409_CONFLICT,
}


def error_response(exc: RentalError) -> Response:
    """Render a domain error as a typed API response."""
    return Response(
        {"error_code": exc.code.value, "detail": exc.message},
        status=ERROR_HTTP_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
    )


def validation_response(errors) -> Response:
    return Response(
        {"error_code": ErrorCode.VALIDATION.value, "detail": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


class IsRentalParticipant(permissions.BasePermission):
    """Allow access only to users tied to the rental, or administrators."""

    def has_object_permission(self, request, view, obj: Rental) -> bool:
        user = request.user
        if getattr(user, "is_admin", False):
            return True
        return getattr(user, "id", None) in (obj.owner_id, obj.renter_id)


class RentalViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Booking requests, owner decisions and calendar availability."""

    serializer_class = RentalSerializer
    permission_classes = (permissions.IsAuthenticated, IsRentalParticipant)
    filter_backends = (DjangoFilterBackend,)
    filterset_class = RentalFilter

    def get_queryset(self):
        """Restrict rentals to the authenticated participant; admins see everything."""
        user = self.request.user
        if not user.is_authenticated:
            return Rental.objects.none()
        qs = Rental.objects.select_related("item", "owner", "renter").order_by("-created_at")
        if user.is_admin:
            return qs
        return qs.filter(Q(owner=user) | Q(renter=user))

    def get_object(self):
        obj = get_object_or_404(
            Rental.objects.select_related("item", "owner", "renter"),
            pk=self.kwargs["pk"],
        )
        self.check_object_permissions(self.request, obj)
        return obj

    def list(self, request, *args, **kwargs):
        if getattr(settings, "RENTALS_SWEEP_ON_READ", False):
            sweep_overdue_rentals()
        return super().list(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        """Submit a booking request for an item."""
        serializer = RentalCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        data = serializer.validated_data
        try:
            rental = services.create_rental(
                renter=request.user,
                item_id=data["item"],
                start_date=data["start_date"],
                end_date=data["end_date"],
                total_days=data["total_days"],
                total_amount=data["total_amount"],
                message=data.get("message", ""),
            )
        except RentalError as exc:
            return error_response(exc)
        return Response(RentalSerializer(rental).data, status=status.HTTP_201_CREATED)

    @action(
        detail=False,
        methods=["get"],
        url_path="availability",
        permission_classes=[permissions.AllowAny],
    )
    def availability(self, request, *args, **kwargs):
        """Return the booked and cleaning ranges (inclusive) for an item."""
        item_param = request.query_params.get("item")
        if not item_param:
            return validation_response({"item": ["item query parameter is required."]})
        try:
            item_id = int(item_param)
        except (TypeError, ValueError):
            return validation_response({"item": ["item must be a valid integer."]})

        item = Item.objects.filter(pk=item_id).first()
        if item is None:
            return error_response(RentalError(ErrorCode.ITEM_NOT_FOUND, "Item not found."))
        payload = [blocked.as_dict() for blocked in compute_blocked_ranges(item)]
        return Response(payload, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="block")
    def block(self, request, *args, **kwargs):
        """Withhold dates on one of the caller's own items."""
        serializer = BlockDatesSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        data = serializer.validated_data
        try:
            rental = services.block_dates(
                actor=request.user,
                item_id=data["item"],
                start_date=data["start_date"],
                end_date=data["end_date"],
            )
        except RentalError as exc:
            return error_response(exc)
        return Response(RentalSerializer(rental).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="sweep")
    def sweep(self, request, *args, **kwargs):
        """Cancel stale pending rentals on demand (admin-only)."""
        if not request.user.is_admin:
            return error_response(
                RentalError(ErrorCode.FORBIDDEN, "Only administrators can do this.")
            )
        cancelled = sweep_overdue_rentals()
        return Response({"cancelled_count": cancelled}, status=status.HTTP_200_OK)

    def _run(self, operation, **kwargs) -> Response:
        try:
            rental_id = int(self.kwargs["pk"])
        except (TypeError, ValueError):
            return error_response(RentalError(ErrorCode.NOT_FOUND, "Rental not found."))
        try:
            rental = operation(actor=self.request.user, rental_id=rental_id, **kwargs)
        except RentalError as exc:
            return error_response(exc)
        return Response(RentalSerializer(rental).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, *args, **kwargs):
        """Approve a pending rental (owner-only)."""
        return self._run(services.approve_rental)

    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, *args, **kwargs):
        """Reject a pending rental (owner-only)."""
        serializer = RejectSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        return self._run(
            services.reject_rental,
            reason=serializer.validated_data.get("reason", ""),
        )

    @action(detail=True, methods=["post"], url_path="start")
    def start(self, request, *args, **kwargs):
        return self._run(services.start_rental)

    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, *args, **kwargs):
        """Mark an approved or ongoing rental as completed (owner-only)."""
        return self._run(services.complete_rental)

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, *args, **kwargs):
        """Cancel a non-terminal rental (admin-only)."""
        return self._run(services.cancel_rental)

    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, *args, **kwargs):
        """Generic status update through the transition table (admin-only)."""
        serializer = StatusUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_response(serializer.errors)
        return self._run(
            services.update_rental_status,
            status=serializer.validated_data["status"],
            reason=serializer.validated_data.get("reason"),
        )

    @action(detail=True, methods=["post"], url_path="invite-review")
    def invite_review(self, request, *args, **kwargs):
        return self._run(services.invite_review)
