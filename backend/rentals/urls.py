"""URL routing for the rentals API."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import RentalViewSet

app_name = "rentals"

router = DefaultRouter()
router.register("", RentalViewSet, basename="rental")

urlpatterns = [
    path("", include(router.urls)),
]
