from django.conf import settings
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("api/users/", include("users.urls")),
    path("api/rentals/", include(("rentals.urls", "rentals"), namespace="rentals")),
    path("api/reviews/", include("reviews.urls")),
]

if settings.ENABLE_DJANGO_ADMIN:
    urlpatterns.insert(0, path("admin/", admin.site.urls))
