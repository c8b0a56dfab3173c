from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from django.conf import settings

from bookings.models import Booking


@dataclass
class PaymentIntentStub:
    """
    Lightweight stand-in for stripe.PaymentIntent when running in stub mode.

    Tests and local development do not hit Stripe; the identifiers look like
    Stripe's so the payment page and webhook fixtures behave the same way.
    """

    id: str
    client_secret: str
    amount: int
    currency: str
    status: str = "requires_payment_method"


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def payment_metadata(booking: Booking) -> dict:
    return {
        "booking_id": booking.pk,
        "tenant_id": booking.tenant_id,
        "restaurant_id": booking.restaurant_id,
    }


def create_payment_intent(*, booking: Booking, amount_cents: int, currency: str):
    """
    Create a Stripe PaymentIntent (or stub equivalent) for a booking.

    The booking/tenant/restaurant metadata travels back on every webhook for the
    intent and its charges; it is how events find their booking.
    """

    if _should_use_stub():
        intent_id = f"pi_test_{uuid4().hex}"
        return PaymentIntentStub(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}",
            amount=amount_cents,
            currency=currency,
        )

    import stripe

    api_key = _get_stripe_api_key()
    if not api_key:
        raise RuntimeError("Stripe secret key is not configured.")

    stripe.api_key = api_key
    stripe_kwargs = {}
    if booking.tenant.stripe_connect_account:
        stripe_kwargs["stripe_account"] = booking.tenant.stripe_connect_account

    return stripe.PaymentIntent.create(
        amount=amount_cents,
        currency=currency,
        automatic_payment_methods={"enabled": True},
        description=f"Booking #{booking.pk} at {booking.restaurant.name}",
        receipt_email=booking.customer_email or None,
        metadata=payment_metadata(booking),
        **stripe_kwargs,
    )
