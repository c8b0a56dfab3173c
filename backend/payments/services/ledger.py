"""
Exactly-once admission of payment notifications.

The processor delivers at least once and in no particular order. Admission is a
bare INSERT against the unique ``event_id`` column: whichever delivery commits
the row first owns the event, and every other delivery (retry or concurrent
duplicate) hits the constraint. Nothing reads the table before the write.
"""

from __future__ import annotations

import enum
import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from payments.errors import StorageUnavailable
from payments.models import PaymentEvent

logger = logging.getLogger(__name__)


class Admission(enum.Enum):
    ADMITTED = "admitted"
    ALREADY_PROCESSED = "already_processed"


def admit(
    event_id: str,
    *,
    event_type: str = "",
    payload: dict | None = None,
    payment_intent_reference: str = "",
) -> tuple[Admission, PaymentEvent | None]:
    """Claim ``event_id``; only the first caller gets ``ADMITTED`` and the ledger row."""

    if not event_id:
        raise ValueError("event_id is required")
    try:
        with transaction.atomic():
            record = PaymentEvent.objects.create(
                event_id=event_id,
                event_type=event_type,
                payload=payload or {},
                payment_intent_reference=payment_intent_reference,
            )
    except IntegrityError:
        logger.info("Payment event %s already processed; skipping", event_id)
        return Admission.ALREADY_PROCESSED, None
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not record payment event {event_id}: {exc}") from exc

    logger.debug("Admitted payment event %s (%s)", event_id, event_type)
    return Admission.ADMITTED, record


def mark_processed(record: PaymentEvent, outcome: str, detail: str = "") -> None:
    record.outcome = outcome
    record.detail = detail[:500]
    record.processed_at = timezone.now()
    try:
        record.save(update_fields=["outcome", "detail", "processed_at"])
    except DatabaseError as exc:
        raise StorageUnavailable(f"Could not update payment event {record.event_id}: {exc}") from exc
