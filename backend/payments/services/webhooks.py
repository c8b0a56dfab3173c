from __future__ import annotations

import logging
from dataclasses import dataclass

import stripe
from django.db import DatabaseError, transaction

from payments.errors import IntegrityViolation, StorageUnavailable
from payments.models import PaymentEvent
from payments.services import ledger, state_machine
from payments.services.state_machine import NormalizedPaymentEvent, Outcome

logger = logging.getLogger(__name__)
alert_logger = logging.getLogger("payments.alerts")

LEDGER_OUTCOMES = {
    Outcome.TRANSITIONED: PaymentEvent.OUTCOME_TRANSITIONED,
    Outcome.IGNORED: PaymentEvent.OUTCOME_IGNORED,
    Outcome.REJECTED: PaymentEvent.OUTCOME_REJECTED,
    Outcome.FLAGGED: PaymentEvent.OUTCOME_REVIEW,
}


@dataclass(frozen=True)
class WebhookOutcome:
    event_id: str
    admission: ledger.Admission
    outcome: str
    detail: str = ""


def _to_payload(event) -> dict:
    # Current stripe releases no longer expose dict methods on StripeObject.
    if isinstance(event, stripe.StripeObject):
        return event.to_dict()
    return dict(event)


def process_stripe_event(event) -> WebhookOutcome:
    """
    Admit and apply one verified Stripe event.

    Admission, booking transition and invoice run in one transaction: if any
    write fails nothing is kept, ``StorageUnavailable`` propagates and the
    processor retries the delivery. Every other condition is consumed.
    """

    payload = _to_payload(event)
    normalized = NormalizedPaymentEvent.from_stripe(payload)
    try:
        with transaction.atomic():
            admission, record = ledger.admit(
                normalized.event_id,
                event_type=normalized.raw_type,
                payload=payload,
                payment_intent_reference=normalized.payment_intent_reference or "",
            )
            if admission is ledger.Admission.ALREADY_PROCESSED:
                return WebhookOutcome(normalized.event_id, admission, "already_processed")

            try:
                with transaction.atomic():
                    result = state_machine.apply(normalized)
            except IntegrityViolation as exc:
                alert_logger.error("Payment event %s needs manual reconciliation: %s", normalized.event_id, exc)
                ledger.mark_processed(record, PaymentEvent.OUTCOME_REVIEW, str(exc))
                return WebhookOutcome(normalized.event_id, admission, PaymentEvent.OUTCOME_REVIEW, str(exc))

            ledger.mark_processed(record, LEDGER_OUTCOMES[result.outcome], result.detail)
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not process payment event {normalized.event_id}: {exc}") from exc

    logger.info(
        "Processed payment event %s (%s): %s",
        normalized.event_id,
        normalized.raw_type,
        result.outcome.value,
    )
    return WebhookOutcome(normalized.event_id, admission, result.outcome.value, result.detail)
