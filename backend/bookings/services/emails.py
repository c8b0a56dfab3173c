from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail

from bookings.models import Booking
from bookings.services.action_links import build_management_links

logger = logging.getLogger(__name__)


def _format_from_email(restaurant_name: str) -> str:
    default_from = settings.DEFAULT_FROM_EMAIL
    email_addr = default_from
    if '<' in default_from and default_from.endswith('>'):
        email_addr = default_from.split('<', 1)[1].rstrip('>')
    return f"{restaurant_name} via Tablebook <{email_addr}>"


def _format_amount(amount_cents: int | None, currency: str) -> str:
    if amount_cents is None:
        return ""
    return f"{amount_cents / 100:.2f} {currency.upper()}"


def send_payment_confirmation_email(*, booking_id: int, invoice_number: str) -> bool:
    booking = Booking.objects.select_related("restaurant").get(pk=booking_id)
    if not booking.customer_email:
        logger.info("Booking %s has no guest email; skipping confirmation", booking.pk)
        return False

    restaurant_name = booking.restaurant.name
    links = build_management_links(booking)
    body_lines = [
        f"Hi {booking.customer_name or booking.customer_email},",
        "",
        f"Your payment for booking #{booking.pk} at {restaurant_name} was received.",
        f"Invoice: {invoice_number}",
    ]
    if booking.payment_amount_cents is not None:
        body_lines.append(f"Amount: {_format_amount(booking.payment_amount_cents, booking.currency)}")
    body_lines += [
        "",
        f"View your booking: {links['view']}",
        f"Change or cancel: {links['manage']}",
        "",
        "Keep this email: the links above are your access to the booking.",
    ]
    send_mail(
        f"{restaurant_name}: booking #{booking.pk} confirmed",
        "\n".join(body_lines),
        _format_from_email(restaurant_name),
        [booking.customer_email],
        fail_silently=False,
    )
    return True
