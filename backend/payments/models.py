from django.db import models


class PaymentEvent(models.Model):
    """Every payment notification received, keyed by the processor's event id."""

    OUTCOME_ADMITTED = "admitted"
    OUTCOME_TRANSITIONED = "transitioned"
    OUTCOME_IGNORED = "ignored"
    OUTCOME_REJECTED = "rejected"
    OUTCOME_REVIEW = "review"
    OUTCOMES = [
        (OUTCOME_ADMITTED, "Admitted"),
        (OUTCOME_TRANSITIONED, "Transitioned"),
        (OUTCOME_IGNORED, "Ignored"),
        (OUTCOME_REJECTED, "Rejected"),
        (OUTCOME_REVIEW, "Needs review"),
    ]

    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, blank=True)
    payment_intent_reference = models.CharField(max_length=200, blank=True, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    outcome = models.CharField(max_length=20, choices=OUTCOMES, default=OUTCOME_ADMITTED)
    detail = models.CharField(max_length=500, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-received_at"]

    def __str__(self):
        return f"{self.event_id} ({self.event_type})"


class Invoice(models.Model):
    STATUS_PAID = "paid"
    STATUS_REFUNDED = "refunded"
    STATUSES = [
        (STATUS_PAID, "Paid"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    invoice_number = models.CharField(max_length=80, unique=True)
    booking = models.ForeignKey("bookings.Booking", on_delete=models.PROTECT, related_name="invoices")
    tenant = models.ForeignKey("orgs.Tenant", on_delete=models.PROTECT, related_name="invoices")
    restaurant = models.ForeignKey("orgs.Restaurant", on_delete=models.PROTECT, related_name="invoices")
    payment_intent_reference = models.CharField(max_length=200)
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=10)
    status = models.CharField(max_length=12, choices=STATUSES, default=STATUS_PAID)
    paid_at = models.DateTimeField()
    refunded_at = models.DateTimeField(null=True, blank=True)
    receipt_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-paid_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "payment_intent_reference"],
                name="unique_invoice_per_booking_payment",
            ),
        ]

    def __str__(self):
        return self.invoice_number
