from __future__ import annotations

import django_filters

from .models import Rental


class RentalFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Rental.Status.choices)
    item = django_filters.NumberFilter(field_name="item_id")
    role = django_filters.ChoiceFilter(
        choices=(("renter", "renter"), ("owner", "owner")),
        method="filter_role",
    )
    start_after = django_filters.DateFilter(field_name="start_date", lookup_expr="gte")
    end_before = django_filters.DateFilter(field_name="end_date", lookup_expr="lte")

    class Meta:
        model = Rental
        fields = ["status", "item", "role", "start_after", "end_before"]

    def filter_role(self, queryset, name, value):
        user = getattr(self.request, "user", None)
        if user is None or not user.is_authenticated:
            return queryset.none()
        if value == "renter":
            return queryset.filter(renter=user)
        return queryset.filter(owner=user)
