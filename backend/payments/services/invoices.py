from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import DatabaseError, IntegrityError, transaction

from bookings.models import Booking
from payments.errors import StorageUnavailable
from payments.models import Invoice, PaymentEvent

logger = logging.getLogger(__name__)

RECEIPT_EVENT_TYPE = "charge.succeeded"


class InvoiceOutcome(enum.Enum):
    RECORDED = "recorded"
    ALREADY_RECORDED = "already_recorded"


@dataclass(frozen=True)
class InvoiceResult:
    outcome: InvoiceOutcome
    invoice_number: str


def generate_invoice_number(booking: Booking, at: datetime) -> str:
    return (
        f"INV-{booking.tenant_id}-{booking.restaurant_id}-{booking.pk}-"
        f"{at:%Y%m%d%H%M%S%f}"
    )


def _kept_receipt(payment_intent_reference: str) -> str:
    """Receipt URL from a charge.succeeded that arrived before the invoice existed."""

    payloads = PaymentEvent.objects.filter(
        payment_intent_reference=payment_intent_reference,
        event_type=RECEIPT_EVENT_TYPE,
    ).order_by("-received_at").values_list("payload", flat=True)
    for payload in payloads:
        receipt_url = ((payload.get("data") or {}).get("object") or {}).get("receipt_url")
        if receipt_url:
            return receipt_url
    return ""


def record_payment(
    booking: Booking,
    payment_intent_reference: str,
    amount_cents: int,
    currency: str,
    paid_at: datetime,
) -> InvoiceResult:
    """
    Create the paid invoice for one charge, at most once per booking and payment.

    A second call for the same (booking, payment reference) returns the existing
    invoice number with ``ALREADY_RECORDED`` instead of failing.

    A receipt delivered before the payment is copied onto the new invoice.
    """

    invoice_number = generate_invoice_number(booking, paid_at)
    try:
        with transaction.atomic():
            Invoice.objects.create(
                invoice_number=invoice_number,
                booking=booking,
                tenant_id=booking.tenant_id,
                restaurant_id=booking.restaurant_id,
                payment_intent_reference=payment_intent_reference,
                amount_cents=amount_cents,
                currency=currency.lower(),
                status=Invoice.STATUS_PAID,
                paid_at=paid_at,
                receipt_url=_kept_receipt(payment_intent_reference),
            )
    except IntegrityError:
        existing = (
            Invoice.objects.filter(booking=booking, payment_intent_reference=payment_intent_reference)
            .values_list("invoice_number", flat=True)
            .first()
        )
        if existing is None:
            raise
        logger.info(
            "Invoice %s already recorded for booking %s / %s",
            existing,
            booking.pk,
            payment_intent_reference,
        )
        return InvoiceResult(InvoiceOutcome.ALREADY_RECORDED, existing)
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not record invoice for booking {booking.pk}: {exc}") from exc

    logger.info("Recorded invoice %s for booking %s", invoice_number, booking.pk)
    return InvoiceResult(InvoiceOutcome.RECORDED, invoice_number)


def mark_refunded(payment_intent_reference: str, refunded_at: datetime) -> int:
    try:
        return Invoice.objects.filter(
            payment_intent_reference=payment_intent_reference,
            status=Invoice.STATUS_PAID,
        ).update(status=Invoice.STATUS_REFUNDED, refunded_at=refunded_at)
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not refund invoice for {payment_intent_reference}: {exc}") from exc


def attach_receipt(payment_intent_reference: str, receipt_url: str) -> int:
    try:
        return Invoice.objects.filter(payment_intent_reference=payment_intent_reference).update(
            receipt_url=receipt_url
        )
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not attach receipt for {payment_intent_reference}: {exc}") from exc
