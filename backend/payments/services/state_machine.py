"""
Applies admitted payment events to bookings.

Each event type maps to exactly one handler in ``TRANSITIONS``. Handlers read
the booking, decide, and write with a single compare-and-set UPDATE keyed on
the state they read. When another writer got there first the update matches
no row, the handler returns ``None`` and ``apply`` re-reads and decides again.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import partial

from django.db import DatabaseError, transaction
from django.utils import timezone

from bookings.models import PAID_STATUSES, Booking, BookingStatus, PaymentStatus
from payments.errors import ErrorCode, IntegrityViolation, StorageUnavailable
from payments.services import invoices

logger = logging.getLogger(__name__)
alert_logger = logging.getLogger("payments.alerts")

MAX_ATTEMPTS = 3


class PaymentEventType(enum.Enum):
    SUCCEEDED = "payment_intent.succeeded"
    FAILED = "payment_intent.payment_failed"
    REFUNDED = "charge.refunded"
    RECEIPT = "charge.succeeded"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_stripe(cls, event_type: str) -> "PaymentEventType":
        try:
            return cls(event_type)
        except ValueError:
            return cls.UNSUPPORTED


class Outcome(enum.Enum):
    TRANSITIONED = "transitioned"
    IGNORED = "ignored"
    REJECTED = "rejected"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class NormalizedPaymentEvent:
    event_id: str
    type: PaymentEventType
    raw_type: str = ""
    payment_intent_reference: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    booking_id: int | None = None
    tenant_id: int | None = None
    restaurant_id: int | None = None
    receipt_url: str = ""
    full_refund: bool = False

    @classmethod
    def from_stripe(cls, event: dict) -> "NormalizedPaymentEvent":
        """Normalize a Stripe event given as a plain dict (``stripe.Event.to_dict()``)."""

        event_type = PaymentEventType.from_stripe(event["type"])
        obj = event["data"]["object"]
        metadata = obj.get("metadata") or {}
        full_refund = False

        if obj.get("object") == "charge" or event_type in (PaymentEventType.REFUNDED, PaymentEventType.RECEIPT):
            reference = obj.get("payment_intent")
            amount = obj.get("amount_refunded") if event_type == PaymentEventType.REFUNDED else obj.get("amount")
            if event_type == PaymentEventType.REFUNDED:
                # Stripe sends charge.refunded for partial refunds too, with refunded=false.
                full_refund = obj.get("refunded")
                if full_refund is None:
                    full_refund = (amount or 0) >= (obj.get("amount") or 0)
        else:
            reference = obj.get("id")
            amount = obj.get("amount_received") or obj.get("amount")

        return cls(
            event_id=event["id"],
            type=event_type,
            raw_type=event["type"],
            payment_intent_reference=reference,
            amount_cents=amount,
            currency=(obj.get("currency") or "").lower() or None,
            booking_id=_metadata_int(metadata, "booking_id"),
            tenant_id=_metadata_int(metadata, "tenant_id"),
            restaurant_id=_metadata_int(metadata, "restaurant_id"),
            receipt_url=obj.get("receipt_url") or "",
            full_refund=bool(full_refund),
        )


@dataclass(frozen=True)
class TransitionResult:
    outcome: Outcome
    booking_id: int | None = None
    invoice_number: str | None = None
    error: ErrorCode | None = None
    detail: str = ""


def _metadata_int(metadata, key):
    try:
        value = int(metadata.get(key))
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None


def check_invariant(booking_id, status, payment_status) -> None:
    if payment_status == PaymentStatus.PAID and status not in PAID_STATUSES:
        raise IntegrityViolation(booking_id, status, payment_status)


def _resolve_booking(event: NormalizedPaymentEvent, *, by_reference: bool = False) -> Booking | None:
    try:
        if event.booking_id is not None:
            booking = Booking.objects.filter(
                pk=event.booking_id,
                tenant_id=event.tenant_id,
                restaurant_id=event.restaurant_id,
            ).first()
            if booking is not None or not by_reference:
                return booking
        if by_reference and event.payment_intent_reference:
            return Booking.objects.filter(payment_intent_reference=event.payment_intent_reference).first()
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not load booking for event {event.event_id}: {exc}") from exc
    return None


def _compare_and_set(booking: Booking, **changes) -> bool:
    check_invariant(
        booking.pk,
        changes.get("status", booking.status),
        changes.get("payment_status", booking.payment_status),
    )
    changes["updated_at"] = timezone.now()
    try:
        updated = Booking.objects.filter(
            pk=booking.pk,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_intent_reference=booking.payment_intent_reference,
        ).update(**changes)
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not update booking {booking.pk}: {exc}") from exc
    if not updated:
        return False
    for name, value in changes.items():
        setattr(booking, name, value)
    return True


def _booking_not_found(event: NormalizedPaymentEvent) -> TransitionResult:
    alert_logger.error(
        "Payment event %s (%s) references unknown booking %s (tenant=%s, restaurant=%s, payment=%s)",
        event.event_id,
        event.raw_type,
        event.booking_id,
        event.tenant_id,
        event.restaurant_id,
        event.payment_intent_reference,
    )
    return TransitionResult(
        Outcome.REJECTED,
        booking_id=event.booking_id,
        error=ErrorCode.BOOKING_NOT_FOUND,
        detail="Booking not found",
    )


def _flag(booking: Booking, event: NormalizedPaymentEvent, reason: str, **changes) -> TransitionResult | None:
    if not _compare_and_set(booking, needs_review=True, review_reason=reason[:300], **changes):
        return None
    alert_logger.warning(
        "Booking %s flagged for review after %s (%s): %s",
        booking.pk,
        event.event_id,
        event.payment_intent_reference,
        reason,
    )
    return TransitionResult(Outcome.FLAGGED, booking_id=booking.pk, detail=reason)


def _confirm_payment(booking: Booking, event: NormalizedPaymentEvent, **changes) -> TransitionResult | None:
    paid_at = timezone.now()
    if not _compare_and_set(
        booking,
        payment_status=PaymentStatus.PAID,
        payment_intent_reference=event.payment_intent_reference,
        payment_paid_at=paid_at,
        **changes,
    ):
        return None

    if booking.payment_amount_cents is not None and booking.payment_amount_cents != event.amount_cents:
        logger.warning(
            "Booking %s expected %s but %s paid %s",
            booking.pk,
            booking.payment_amount_cents,
            event.payment_intent_reference,
            event.amount_cents,
        )

    invoice = invoices.record_payment(
        booking,
        event.payment_intent_reference,
        event.amount_cents or 0,
        event.currency or booking.currency,
        paid_at,
    )
    transaction.on_commit(partial(_send_confirmation, booking.pk, invoice.invoice_number))
    logger.info("Booking %s paid via %s", booking.pk, event.payment_intent_reference)
    return TransitionResult(
        Outcome.TRANSITIONED,
        booking_id=booking.pk,
        invoice_number=invoice.invoice_number,
    )


def _send_confirmation(booking_id: int, invoice_number: str) -> None:
    from bookings.services.emails import send_payment_confirmation_email

    try:
        send_payment_confirmation_email(booking_id=booking_id, invoice_number=invoice_number)
    except Exception:
        # The payment is already committed; a lost email must not fail the webhook.
        logger.exception("Failed to send payment confirmation for booking %s", booking_id)


def _on_succeeded(event: NormalizedPaymentEvent) -> TransitionResult | None:
    booking = _resolve_booking(event)
    if booking is None:
        return _booking_not_found(event)

    reference = event.payment_intent_reference
    if booking.payment_intent_reference == reference and booking.payment_status in (
        PaymentStatus.PAID,
        PaymentStatus.REFUNDED,
    ):
        return TransitionResult(Outcome.IGNORED, booking_id=booking.pk, detail="Payment already applied")

    if booking.status == BookingStatus.WAITING_PAYMENT:
        return _confirm_payment(booking, event, status=BookingStatus.CONFIRMED)

    if booking.status in PAID_STATUSES:
        if booking.payment_status == PaymentStatus.PAID:
            return _flag(booking, event, f"Second payment {reference} for an already paid booking")
        return _confirm_payment(booking, event)

    # pending or cancelled: keep the money trail, let staff decide.
    return _flag(
        booking,
        event,
        f"Payment {reference} received while booking was {booking.status}",
        payment_intent_reference=reference,
        payment_paid_at=timezone.now(),
    )


def _on_failed(event: NormalizedPaymentEvent) -> TransitionResult | None:
    booking = _resolve_booking(event)
    if booking is None:
        return _booking_not_found(event)

    if booking.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.FAILED):
        return TransitionResult(
            Outcome.IGNORED,
            booking_id=booking.pk,
            detail=f"Payment already {booking.payment_status}",
        )
    if not _compare_and_set(booking, payment_status=PaymentStatus.FAILED):
        return None
    logger.info("Payment %s failed for booking %s", event.payment_intent_reference, booking.pk)
    return TransitionResult(Outcome.TRANSITIONED, booking_id=booking.pk)


def _on_refunded(event: NormalizedPaymentEvent) -> TransitionResult | None:
    booking = _resolve_booking(event, by_reference=True)
    if booking is None:
        return _booking_not_found(event)

    reference = event.payment_intent_reference
    if not event.full_refund:
        logger.info("Partial refund of %s on %s for booking %s", event.amount_cents, reference, booking.pk)
        return TransitionResult(
            Outcome.IGNORED,
            booking_id=booking.pk,
            detail=f"Partial refund of {event.amount_cents} on {reference}",
        )

    now = timezone.now()
    if booking.payment_intent_reference == reference:
        if booking.payment_status == PaymentStatus.REFUNDED:
            return TransitionResult(Outcome.IGNORED, booking_id=booking.pk, detail="Refund already applied")
        if not _compare_and_set(booking, payment_status=PaymentStatus.REFUNDED):
            return None
        invoices.mark_refunded(reference, now)
        logger.info("Booking %s refunded (%s)", booking.pk, reference)
        return TransitionResult(Outcome.TRANSITIONED, booking_id=booking.pk)

    if booking.payment_status == PaymentStatus.PAID:
        invoices.mark_refunded(reference, now)
        return TransitionResult(
            Outcome.IGNORED,
            booking_id=booking.pk,
            detail=f"Refund {reference} does not match the booking payment",
        )

    # Refund overtook the payment notification; the later success is ignored by reference.
    return _flag(
        booking,
        event,
        f"Refund {reference} arrived before the payment was confirmed",
        payment_status=PaymentStatus.REFUNDED,
        payment_intent_reference=reference,
    )


def _on_receipt(event: NormalizedPaymentEvent) -> TransitionResult | None:
    if not event.payment_intent_reference or not event.receipt_url:
        return TransitionResult(Outcome.IGNORED, detail="No receipt to attach")
    updated = invoices.attach_receipt(event.payment_intent_reference, event.receipt_url)
    if not updated:
        # The ledger row keeps the receipt; record_payment picks it up by reference.
        return TransitionResult(Outcome.IGNORED, detail="No invoice for this payment yet; receipt kept")
    return TransitionResult(Outcome.TRANSITIONED, booking_id=event.booking_id)


def _on_unsupported(event: NormalizedPaymentEvent) -> TransitionResult:
    logger.debug("Ignoring payment event %s of type %s", event.event_id, event.raw_type)
    return TransitionResult(Outcome.IGNORED, detail=f"Unhandled event type {event.raw_type}")


TRANSITIONS = {
    PaymentEventType.SUCCEEDED: _on_succeeded,
    PaymentEventType.FAILED: _on_failed,
    PaymentEventType.REFUNDED: _on_refunded,
    PaymentEventType.RECEIPT: _on_receipt,
    PaymentEventType.UNSUPPORTED: _on_unsupported,
}


def apply(event: NormalizedPaymentEvent) -> TransitionResult:
    """Apply an admitted event. Call once per event id, after ledger admission."""

    handler = TRANSITIONS[event.type]
    for _ in range(MAX_ATTEMPTS):
        result = handler(event)
        if result is not None:
            return result
        logger.info("Booking for event %s changed concurrently; re-evaluating", event.event_id)
    raise StorageUnavailable(f"Booking for event {event.event_id} kept changing during update")
