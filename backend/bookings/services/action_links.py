from __future__ import annotations

from urllib.parse import urlencode

from django.conf import settings

from bookings.models import Booking, BookingStatus, PaymentStatus
from bookings.services.capability_tokens import BookingAction, current_key_id, derive

ACTION_PATHS = {
    BookingAction.VIEW: "/bookings/{booking_id}",
    BookingAction.MANAGE: "/bookings/{booking_id}/manage",
    BookingAction.CANCEL: "/bookings/{booking_id}/cancel",
    BookingAction.PAYMENT: "/bookings/{booking_id}/payment",
}


def build_action_url(
    booking: Booking,
    action: BookingAction | str,
    *,
    base_url: str | None = None,
    amount_cents: int | None = None,
    currency: str | None = None,
) -> str:
    """
    Build the guest link that authorises ``action`` on ``booking``.

    Issuing the same link twice yields the same digest, so links can be re-sent
    freely. Payment links also carry the expected amount and currency so the
    payment page can display the charge without a lookup.
    """

    action = BookingAction(action)
    base_url = (base_url if base_url is not None else settings.FRONTEND_URL).rstrip("/")
    key_id = current_key_id()

    params = {
        "booking_id": booking.pk,
        "tenant_id": booking.tenant_id,
        "restaurant_id": booking.restaurant_id,
        "action": action.value,
        "hash": derive(booking.pk, booking.tenant_id, booking.restaurant_id, action, key_id=key_id),
        "kid": key_id,
    }
    if action == BookingAction.PAYMENT:
        amount_cents = amount_cents if amount_cents is not None else booking.payment_amount_cents
        if amount_cents is None:
            raise ValueError(f"Booking {booking.pk} has no payment amount to request.")
        params["amount"] = amount_cents
        params["currency"] = (currency or booking.currency).lower()

    path = ACTION_PATHS[action].format(booking_id=booking.pk)
    return f"{base_url}{path}?{urlencode(params)}"


def build_management_links(booking: Booking, *, base_url: str | None = None) -> dict[str, str]:
    links = {
        action.value: build_action_url(booking, action, base_url=base_url)
        for action in (BookingAction.VIEW, BookingAction.MANAGE, BookingAction.CANCEL)
    }
    awaiting_payment = (
        booking.status == BookingStatus.WAITING_PAYMENT
        and booking.payment_status != PaymentStatus.PAID
        and booking.payment_amount_cents is not None
    )
    if awaiting_payment:
        links[BookingAction.PAYMENT.value] = build_action_url(
            booking, BookingAction.PAYMENT, base_url=base_url
        )
    return links
