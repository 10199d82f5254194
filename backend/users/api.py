from __future__ import annotations

from rest_framework import generics, permissions

from .models import HostRentalRateLog
from .serializers import HostRentalRateLogSerializer, ProfileSerializer


class MeView(generics.RetrieveUpdateAPIView):
    """Authenticated profile view for the current user."""

    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ["get", "patch", "head", "options"]

    def get_object(self):
        user = self.request.user
        self.check_object_permissions(self.request, user)
        return user


class HostRentalRateLogListView(generics.ListAPIView):
    """
    List trust score adjustments.

    Hosts see their own history; admins may inspect any host via ``?host=<id>``.
    """

    serializer_class = HostRentalRateLogSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        qs = HostRentalRateLog.objects.select_related("rental")
        host_param = self.request.query_params.get("host")
        if user.is_admin and host_param:
            try:
                return qs.filter(host_id=int(host_param))
            except (TypeError, ValueError):
                return qs.none()
        return qs.filter(host=user)
