import logging

import pytest
from django.db import DatabaseError

from bookings.models import Booking, BookingStatus, PaymentStatus
from payments.errors import ErrorCode, IntegrityViolation, StorageUnavailable
from payments.models import Invoice
from payments.services import state_machine
from payments.services.state_machine import (
    TRANSITIONS,
    NormalizedPaymentEvent,
    Outcome,
    PaymentEventType,
)


def _apply(event_dict):
    return state_machine.apply(NormalizedPaymentEvent.from_stripe(event_dict))


def test_every_event_type_has_a_transition():
    assert set(TRANSITIONS) == set(PaymentEventType)


def test_unknown_stripe_types_map_to_unsupported():
    assert PaymentEventType.from_stripe("customer.created") is PaymentEventType.UNSUPPORTED
    assert PaymentEventType.from_stripe("charge.refunded") is PaymentEventType.REFUNDED


def test_normalizes_payment_intent_event(stripe_event):
    event = NormalizedPaymentEvent.from_stripe(stripe_event(currency="EUR"))

    assert event.event_id == "evt_1"
    assert event.type is PaymentEventType.SUCCEEDED
    assert event.payment_intent_reference == "pi_1"
    assert event.amount_cents == 8000
    assert event.currency == "eur"
    assert (event.booking_id, event.tenant_id, event.restaurant_id) == (106, 3, 7)


def test_normalizes_charge_event_and_bad_metadata(stripe_event):
    raw = stripe_event("evt_r", "charge.refunded", amount=3000)
    raw["data"]["object"]["metadata"] = {"booking_id": "abc", "tenant_id": "-3"}

    event = NormalizedPaymentEvent.from_stripe(raw)

    assert event.payment_intent_reference == "pi_1"
    assert event.amount_cents == 3000
    assert event.booking_id is None
    assert event.tenant_id is None


def test_refund_without_refunded_flag_compares_amounts(stripe_event):
    partial = stripe_event("evt_r", "charge.refunded", amount_refunded=1000)
    full = stripe_event("evt_r2", "charge.refunded")
    del partial["data"]["object"]["refunded"]
    del full["data"]["object"]["refunded"]

    assert NormalizedPaymentEvent.from_stripe(partial).full_refund is False
    assert NormalizedPaymentEvent.from_stripe(full).full_refund is True


@pytest.mark.django_db
def test_success_confirms_waiting_booking_and_records_invoice(booking, stripe_event):
    result = _apply(stripe_event())

    assert result.outcome is Outcome.TRANSITIONED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID
    assert booking.payment_intent_reference == "pi_1"
    assert booking.payment_paid_at is not None
    invoice = Invoice.objects.get()
    assert invoice.invoice_number == result.invoice_number
    assert (invoice.amount_cents, invoice.currency, invoice.payment_intent_reference) == (8000, "eur", "pi_1")


@pytest.mark.django_db
def test_success_applied_twice_does_not_create_second_invoice(booking, stripe_event):
    _apply(stripe_event())
    again = _apply(stripe_event())

    assert again.outcome is Outcome.IGNORED
    assert Invoice.objects.count() == 1


@pytest.mark.django_db
def test_success_for_unknown_booking_is_rejected_and_alerted(tenant, restaurant, stripe_event, caplog):
    with caplog.at_level(logging.ERROR, logger="payments.alerts"):
        result = _apply(stripe_event(booking_id=999))

    assert result.outcome is Outcome.REJECTED
    assert result.error is ErrorCode.BOOKING_NOT_FOUND
    assert any(r.name == "payments.alerts" for r in caplog.records)
    assert Invoice.objects.count() == 0


@pytest.mark.django_db
def test_metadata_from_another_tenant_does_not_resolve(booking, stripe_event):
    result = _apply(stripe_event(tenant_id=4))

    assert result.outcome is Outcome.REJECTED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.WAITING_PAYMENT


@pytest.mark.django_db
def test_success_for_cancelled_booking_is_flagged_not_confirmed(make_booking, stripe_event):
    booking = make_booking(pk=106, status=BookingStatus.CANCELLED)

    result = _apply(stripe_event())

    assert result.outcome is Outcome.FLAGGED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CANCELLED
    assert booking.payment_status != PaymentStatus.PAID
    assert booking.payment_intent_reference == "pi_1"
    assert booking.payment_paid_at is not None
    assert booking.needs_review is True
    assert "cancelled" in booking.review_reason
    assert Invoice.objects.count() == 0


@pytest.mark.django_db
def test_second_charge_for_paid_booking_is_flagged(make_booking, stripe_event):
    booking = make_booking(
        pk=106,
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PAID,
        payment_intent_reference="pi_1",
    )

    result = _apply(stripe_event("evt_2", reference="pi_2"))

    assert result.outcome is Outcome.FLAGGED
    booking.refresh_from_db()
    assert booking.payment_intent_reference == "pi_1"
    assert booking.needs_review is True


@pytest.mark.django_db
def test_success_for_confirmed_unpaid_booking_records_payment(make_booking, stripe_event):
    booking = make_booking(pk=106, status=BookingStatus.CONFIRMED)

    result = _apply(stripe_event())

    assert result.outcome is Outcome.TRANSITIONED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID
    assert Invoice.objects.count() == 1


@pytest.mark.django_db
def test_failure_marks_payment_failed_and_keeps_status(booking, stripe_event):
    result = _apply(stripe_event("evt_f", "payment_intent.payment_failed"))

    assert result.outcome is Outcome.TRANSITIONED
    booking.refresh_from_db()
    assert booking.payment_status == PaymentStatus.FAILED
    assert booking.status == BookingStatus.WAITING_PAYMENT


@pytest.mark.django_db
def test_late_failure_never_downgrades_a_paid_booking(booking, stripe_event):
    _apply(stripe_event())

    result = _apply(stripe_event("evt_f", "payment_intent.payment_failed", reference="pi_0"))

    assert result.outcome is Outcome.IGNORED
    booking.refresh_from_db()
    assert booking.payment_status == PaymentStatus.PAID


@pytest.mark.django_db
def test_retry_after_failure_confirms(booking, stripe_event):
    _apply(stripe_event("evt_f", "payment_intent.payment_failed", reference="pi_0"))
    result = _apply(stripe_event("evt_ok", reference="pi_1"))

    assert result.outcome is Outcome.TRANSITIONED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID


@pytest.mark.django_db
def test_refund_marks_booking_and_invoice(booking, stripe_event):
    _apply(stripe_event())

    result = _apply(stripe_event("evt_r", "charge.refunded"))

    assert result.outcome is Outcome.TRANSITIONED
    booking.refresh_from_db()
    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.status == BookingStatus.CONFIRMED
    assert Invoice.objects.get().status == Invoice.STATUS_REFUNDED

    assert _apply(stripe_event("evt_r2", "charge.refunded")).outcome is Outcome.IGNORED


@pytest.mark.django_db
def test_partial_refund_keeps_booking_and_invoice_paid(booking, stripe_event):
    _apply(stripe_event())

    result = _apply(
        stripe_event("evt_r", "charge.refunded", amount=8000, amount_refunded=1000, refunded=False)
    )

    assert result.outcome is Outcome.IGNORED
    assert "Partial refund of 1000" in result.detail
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PAID
    assert Invoice.objects.get().status == Invoice.STATUS_PAID

    # Refunding the rest arrives as a full refund.
    rest = _apply(stripe_event("evt_r2", "charge.refunded", amount=8000))
    assert rest.outcome is Outcome.TRANSITIONED
    assert Invoice.objects.get().status == Invoice.STATUS_REFUNDED


@pytest.mark.django_db
def test_refund_without_metadata_resolves_by_payment_reference(booking, stripe_event):
    _apply(stripe_event())

    result = _apply(stripe_event("evt_r", "charge.refunded", booking_id=None))

    assert result.outcome is Outcome.TRANSITIONED
    assert result.booking_id == 106


@pytest.mark.django_db
def test_refund_arriving_before_success_is_tolerated(booking, stripe_event):
    refund = _apply(stripe_event("evt_r", "charge.refunded"))
    success = _apply(stripe_event("evt_s"))

    assert refund.outcome is Outcome.FLAGGED
    assert success.outcome is Outcome.IGNORED
    booking.refresh_from_db()
    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.status == BookingStatus.WAITING_PAYMENT
    assert Invoice.objects.count() == 0


@pytest.mark.django_db
def test_receipt_is_attached_to_invoice(booking, stripe_event):
    _apply(stripe_event())

    result = _apply(
        stripe_event("evt_c", "charge.succeeded", receipt_url="https://pay.stripe.test/receipts/abc")
    )

    assert result.outcome is Outcome.TRANSITIONED
    assert Invoice.objects.get().receipt_url == "https://pay.stripe.test/receipts/abc"


@pytest.mark.django_db
def test_unsupported_event_is_ignored(booking, stripe_event):
    result = _apply(stripe_event("evt_x", "customer.created"))

    assert result.outcome is Outcome.IGNORED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.WAITING_PAYMENT


def test_paid_requires_confirmed_status():
    state_machine.check_invariant(1, BookingStatus.CONFIRMED, PaymentStatus.PAID)
    state_machine.check_invariant(1, BookingStatus.COMPLETED, PaymentStatus.PAID)
    state_machine.check_invariant(1, BookingStatus.CANCELLED, PaymentStatus.REFUNDED)

    with pytest.raises(IntegrityViolation) as excinfo:
        state_machine.check_invariant(1, BookingStatus.WAITING_PAYMENT, PaymentStatus.PAID)

    assert excinfo.value.code is ErrorCode.INTEGRITY_VIOLATION


@pytest.mark.django_db
def test_transition_breaking_invariant_writes_nothing(booking):
    with pytest.raises(IntegrityViolation):
        state_machine._compare_and_set(booking, payment_status=PaymentStatus.PAID)

    booking.refresh_from_db()
    assert booking.payment_status == PaymentStatus.NONE


@pytest.mark.django_db
def test_lost_race_is_re_evaluated(booking, stripe_event, monkeypatch):
    original = state_machine._compare_and_set
    calls = {"n": 0}

    def racing_compare_and_set(target, **changes):
        calls["n"] += 1
        if calls["n"] == 1:
            # A concurrent cancellation lands between our read and our write.
            Booking.objects.filter(pk=target.pk).update(status=BookingStatus.CANCELLED)
        return original(target, **changes)

    monkeypatch.setattr(state_machine, "_compare_and_set", racing_compare_and_set)

    result = _apply(stripe_event())

    assert result.outcome is Outcome.FLAGGED
    booking.refresh_from_db()
    assert booking.status == BookingStatus.CANCELLED
    assert booking.payment_status != PaymentStatus.PAID
    assert Invoice.objects.count() == 0


@pytest.mark.django_db
def test_storage_failure_propagates(booking, stripe_event, monkeypatch):
    def broken_update(self, **kwargs):
        raise DatabaseError("disk full")

    monkeypatch.setattr("django.db.models.query.QuerySet.update", broken_update)

    with pytest.raises(StorageUnavailable):
        _apply(stripe_event())
