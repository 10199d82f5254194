from datetime import date

import pytest
from django.core import mail

from notifications import tasks
from notifications.models import NotificationLog
from rentals.models import Rental

pytestmark = pytest.mark.django_db


def test_email_logging_success(rental_factory):
    rental = rental_factory(start_date=date(2030, 1, 1), end_date=date(2030, 1, 2))

    sent = tasks._send_email_logged(
        "custom_type",
        to_email="user@example.com",
        subject="Test Subject",
        body="Hello",
        rental_id=rental.id,
    )

    log = NotificationLog.objects.latest("created_at")
    assert sent is True
    assert log.status == NotificationLog.Status.SENT
    assert log.type == "custom_type"
    assert log.rental_id == rental.id
    assert len(mail.outbox) == 1


def test_email_logging_failure(monkeypatch, rental_factory):
    rental = rental_factory(start_date=date(2030, 1, 1), end_date=date(2030, 1, 2))

    def _raise(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(tasks.EmailMultiAlternatives, "send", _raise)

    sent = tasks._send_email_logged(
        "custom_fail",
        to_email="fail@example.com",
        subject="Test",
        body="Body",
        rental_id=rental.id,
    )

    log = NotificationLog.objects.latest("created_at")
    assert sent is False
    assert log.status == NotificationLog.Status.FAILED
    assert "boom" in log.error


def test_missing_recipient_is_logged_as_failure():
    sent = tasks._send_email_logged("no_recipient", to_email="", subject="Hi", body="Body")

    log = NotificationLog.objects.get(type="no_recipient")
    assert sent is False
    assert log.error == "missing recipient email"
    assert mail.outbox == []
