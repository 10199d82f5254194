"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from datetime import date
from typing import Callable

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from items.models import Item
from rentals.domain import inclusive_days
from rentals.models import Rental

User = get_user_model()


@pytest.fixture
def api_client():
    """DRF API client for request/response helpers."""
    return APIClient()


def _create_user(*, username: str, complete_profile: bool = True, **extra) -> User:
    profile = {"phone": "555-0100", "address": "1 Main St"} if complete_profile else {}
    return User.objects.create_user(
        username=username,
        password="testpass",
        email=f"{username}@example.com",
        **profile,
        **extra,
    )


@pytest.fixture
def owner_user():
    return _create_user(username="owner")


@pytest.fixture
def renter_user():
    return _create_user(username="renter")


@pytest.fixture
def other_user():
    return _create_user(username="other")


@pytest.fixture
def incomplete_user():
    return _create_user(username="incomplete", complete_profile=False)


@pytest.fixture
def admin_user():
    return _create_user(username="admin", role=User.Role.ADMIN)


@pytest.fixture
def item(owner_user):
    return Item.objects.create(
        owner=owner_user,
        title="Camping Tent",
        description="Four person tent with rain fly.",
        price_per_day=20,
        deposit=100,
        cleaning_buffer_days=0,
    )


@pytest.fixture
def rental_factory(item, renter_user) -> Callable[..., Rental]:
    def _create_rental(
        *,
        item_override: Item | None = None,
        renter=None,
        start_date: date,
        end_date: date,
        status=Rental.Status.PENDING,
        **extra_fields,
    ) -> Rental:
        selected_item = item_override or item
        return Rental.objects.create(
            item=selected_item,
            owner=selected_item.owner,
            renter=renter or renter_user,
            start_date=start_date,
            end_date=end_date,
            total_days=inclusive_days(start_date, end_date),
            total_amount=extra_fields.pop("total_amount", 0),
            status=status,
            **extra_fields,
        )

    return _create_rental


@pytest.fixture
def spy_task(monkeypatch):
    """Replace ``task.delay`` with a recorder and return the captured calls."""

    def _spy(task):
        calls = []

        def _capture(*args, **kwargs):
            calls.append({"args": args, "kwargs": kwargs})

        monkeypatch.setattr(task, "delay", _capture)
        return calls

    return _spy
