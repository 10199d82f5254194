from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string

from notifications.models import NotificationLog

logger = logging.getLogger(__name__)
User = get_user_model()


def _get_user(user_id: int) -> Optional[User]:
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.warning("notifications: user %s no longer exists", user_id)
        return None


def _get_rental(rental_id: int):
    from rentals.models import Rental

    try:
        return Rental.objects.select_related("item", "owner", "renter").get(pk=rental_id)
    except Rental.DoesNotExist:
        logger.warning("notifications: rental %s no longer exists", rental_id)
        return None


def _render(template: str, context: dict) -> str:
    """Render a template relative to the notifications app."""
    return render_to_string(template, context).strip()


def _frontend_url(path: str) -> str:
    frontend_origin = (getattr(settings, "FRONTEND_ORIGIN", "") or "").rstrip("/")
    return f"{frontend_origin}{path}" if frontend_origin else ""


def _build_email_context(extra: Optional[dict]) -> dict:
    context = {
        "site_name": getattr(settings, "SITE_NAME", "Rentaloop"),
        "site_url": _frontend_url(""),
    }
    if extra:
        context.update(extra)
    return context


def _log_notification(
    channel: str,
    type_: str,
    status: str,
    *,
    user_id: int | None = None,
    rental_id: int | None = None,
    error: str | None = None,
) -> None:
    try:
        NotificationLog.objects.create(
            channel=channel,
            type=type_,
            status=status,
            user_id=user_id,
            rental_id=rental_id,
            error=error or "",
        )
    except Exception:
        logger.exception(
            "notifications: failed to persist notification log",
            extra={"channel": channel, "type": type_, "status": status},
        )


def _prepare_email_bodies(
    subject: str,
    template: str | None,
    context: dict | None,
) -> tuple[str, str | None]:
    context_with_brand = _build_email_context(context or {})
    context_with_brand["subject"] = subject
    body = ""
    html_body = None
    if template:
        body = _render(f"email/{template}", context_with_brand)
        html_template = f"email/{template.rsplit('.', 1)[0]}.html"
        try:
            html_body = _render(html_template, context_with_brand)
        except TemplateDoesNotExist:
            html_body = None
    return body, html_body


def _send_email_logged(
    type_: str,
    *,
    to_email: str | None,
    subject: str,
    body: str | None = None,
    template: str | None = None,
    context: dict | None = None,
    user_id: int | None = None,
    rental_id: int | None = None,
) -> bool:
    if not to_email:
        _log_notification(
            "email",
            type_,
            NotificationLog.Status.FAILED,
            user_id=user_id,
            rental_id=rental_id,
            error="missing recipient email",
        )
        logger.warning("notifications: cannot send email without recipient")
        return False

    text_body, html_body = _prepare_email_bodies(subject, template, context)
    message = EmailMultiAlternatives(
        subject=subject,
        body=body if body is not None else text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to_email],
    )
    if html_body:
        message.attach_alternative(html_body, "text/html")

    try:
        message.send(fail_silently=False)
    except Exception as exc:
        logger.exception(
            "notifications: email send failed",
            extra={"type": type_, "rental_id": rental_id, "user_id": user_id},
        )
        _log_notification(
            "email",
            type_,
            NotificationLog.Status.FAILED,
            user_id=user_id,
            rental_id=rental_id,
            error=str(exc) or exc.__class__.__name__,
        )
        return False

    _log_notification(
        "email",
        type_,
        NotificationLog.Status.SENT,
        user_id=user_id,
        rental_id=rental_id,
    )
    return True


def _display_name(user: Optional[User]) -> str:
    if not user:
        return "Unknown"
    full_name = (user.get_full_name() or "").strip() if hasattr(user, "get_full_name") else ""
    if full_name:
        return full_name
    return getattr(user, "username", "") or str(user)


def _format_date(value: Optional[date]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%b %d, %Y")


def _rental_context(rental) -> dict:
    start_display = _format_date(rental.start_date)
    end_display = _format_date(rental.end_date)
    return {
        "rental": rental,
        "item_title": getattr(rental.item, "title", "your item"),
        "start_date_display": start_display,
        "end_date_display": end_display,
        "date_range_display": f"{start_display} - {end_display}",
        "total_days": rental.total_days,
        "total_amount": rental.total_amount,
    }


@shared_task(queue="emails")
def send_rental_request_email(owner_id: int, rental_id: int):
    """Notify the item owner that a renter submitted a new booking request."""
    owner = _get_user(owner_id)
    rental = _get_rental(rental_id)
    if not owner or not rental:
        return

    context = {
        **_rental_context(rental),
        "recipient_name": _display_name(owner),
        "renter_name": _display_name(rental.renter),
        "cta_url": _frontend_url("/member?tab=requests"),
    }
    _send_email_logged(
        "rental_request",
        to_email=owner.email,
        subject=f"New booking request for {context['item_title']}",
        template="rental_request_new.txt",
        context=context,
        user_id=owner_id,
        rental_id=rental_id,
    )


@shared_task(queue="emails")
def send_rental_received_email(renter_id: int, rental_id: int):
    """Confirm to the renter that the request reached the owner."""
    renter = _get_user(renter_id)
    rental = _get_rental(rental_id)
    if not renter or not rental:
        return

    context = {
        **_rental_context(rental),
        "recipient_name": _display_name(renter),
        "owner_name": _display_name(rental.owner),
        "cta_url": _frontend_url("/member?tab=rentals"),
    }
    _send_email_logged(
        "rental_received",
        to_email=renter.email,
        subject=f"Your booking request for {context['item_title']} was sent",
        template="rental_received.txt",
        context=context,
        user_id=renter_id,
        rental_id=rental_id,
    )


@shared_task(queue="emails")
def send_rental_status_email(renter_id: int, rental_id: int, new_status: str):
    """Notify the renter that the rental status changed (approved, rejected, ...)."""
    from rentals.models import Rental

    renter = _get_user(renter_id)
    rental = _get_rental(rental_id)
    if not renter or not rental:
        return

    status_word_map = {
        Rental.Status.APPROVED: "approved",
        Rental.Status.REJECTED: "declined",
        Rental.Status.ONGOING: "started",
        Rental.Status.COMPLETED: "completed",
        Rental.Status.CANCELLED: "cancelled",
    }
    status_word = status_word_map.get(new_status, "updated")
    context = {
        **_rental_context(rental),
        "recipient_name": _display_name(renter),
        "status_word": status_word,
        "rejection_reason": rental.rejection_reason or "",
        "is_completed": new_status == Rental.Status.COMPLETED,
        "cta_url": _frontend_url("/member?tab=rentals"),
    }
    _send_email_logged(
        "rental_status_update",
        to_email=renter.email,
        subject=f"Your booking for {context['item_title']} was {status_word}",
        template="rental_status_update.txt",
        context=context,
        user_id=renter_id,
        rental_id=rental_id,
    )


@shared_task(queue="emails")
def send_rental_expired_email(rental_id: int):
    """Tell the renter that the owner never answered and the request expired."""
    rental = _get_rental(rental_id)
    if not rental:
        return

    renter = rental.renter
    context = {
        **_rental_context(rental),
        "recipient_name": _display_name(renter),
        "cta_url": _frontend_url(f"/products/{rental.item_id}"),
    }
    _send_email_logged(
        "rental_expired",
        to_email=getattr(renter, "email", None),
        subject=f"Your booking request for {context['item_title']} expired",
        template="rental_expired.txt",
        context=context,
        user_id=renter.id,
        rental_id=rental_id,
    )


@shared_task(queue="emails")
def send_review_invite_email(rental_id: int):
    """Invite the renter to review a completed rental."""
    rental = _get_rental(rental_id)
    if not rental:
        return

    renter = rental.renter
    context = {
        **_rental_context(rental),
        "recipient_name": _display_name(renter),
        "owner_name": _display_name(rental.owner),
        "cta_url": _frontend_url("/member?tab=reviews"),
    }
    _send_email_logged(
        "review_invite",
        to_email=getattr(renter, "email", None),
        subject=f"How was your rental of {context['item_title']}?",
        template="review_invite.txt",
        context=context,
        user_id=renter.id,
        rental_id=rental_id,
    )
