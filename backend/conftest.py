"""Pytest configuration and shared fixtures."""

import pytest
from rest_framework.test import APIClient

from bookings.models import Booking, BookingStatus
from orgs.models import Restaurant, Tenant


@pytest.fixture(autouse=True)
def booking_link_keys(settings):
    settings.BOOKING_LINK_SECRET = "test-link-secret"
    settings.BOOKING_LINK_KEY_ID = "k1"
    settings.BOOKING_LINK_RETIRED_KEYS = {}
    settings.FRONTEND_URL = "https://book.test"
    settings.STRIPE_USE_STUB = True
    settings.STRIPE_SECRET_KEY = ""


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(
        pk=3,
        name="Harbour Group",
        slug="harbour-group",
        contact_email="owner@harbour.test",
    )


@pytest.fixture
def restaurant(tenant):
    return Restaurant.objects.create(pk=7, tenant=tenant, name="Harbour Kitchen")


@pytest.fixture
def make_booking(tenant, restaurant):
    def _make(**overrides):
        data = {
            "tenant": tenant,
            "restaurant": restaurant,
            "customer_name": "Greta Guest",
            "customer_email": "greta@example.test",
            "status": BookingStatus.WAITING_PAYMENT,
            "payment_amount_cents": 8000,
            "currency": "eur",
        }
        data.update(overrides)
        return Booking.objects.create(**data)

    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking(pk=106)


@pytest.fixture
def stripe_event():
    """Build a Stripe-shaped event dict for a booking payment."""

    def _build(
        event_id="evt_1",
        event_type="payment_intent.succeeded",
        *,
        reference="pi_1",
        amount=8000,
        currency="eur",
        booking_id=106,
        tenant_id=3,
        restaurant_id=7,
        **extra,
    ):
        metadata = {}
        if booking_id is not None:
            metadata = {
                "booking_id": str(booking_id),
                "tenant_id": str(tenant_id),
                "restaurant_id": str(restaurant_id),
            }
        if event_type.startswith("charge."):
            obj = {
                "id": f"ch_{event_id}",
                "object": "charge",
                "payment_intent": reference,
                "amount": amount,
                "amount_refunded": amount if event_type == "charge.refunded" else 0,
                "refunded": event_type == "charge.refunded",
                "currency": currency,
                "metadata": metadata,
            }
        else:
            obj = {
                "id": reference,
                "object": "payment_intent",
                "amount": amount,
                "amount_received": amount if event_type == "payment_intent.succeeded" else 0,
                "currency": currency,
                "metadata": metadata,
            }
        obj.update(extra)
        return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}

    return _build
