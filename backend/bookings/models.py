from django.conf import settings
from django.db import models


class BookingStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    WAITING_PAYMENT = "waiting_payment", "Waiting for payment"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"


class PaymentStatus(models.TextChoices):
    NONE = "none", "None"
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})
# A booking may only carry a paid payment once it has been confirmed.
PAID_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.COMPLETED})


def _default_currency():
    return settings.DEFAULT_CURRENCY


class Booking(models.Model):
    """Table reservation made by a guest without an account."""

    tenant = models.ForeignKey("orgs.Tenant", on_delete=models.PROTECT, related_name="bookings")
    restaurant = models.ForeignKey("orgs.Restaurant", on_delete=models.PROTECT, related_name="bookings")
    customer_name = models.CharField(max_length=200, blank=True)
    customer_email = models.EmailField(blank=True)
    guest_count = models.PositiveIntegerField(default=2)
    booking_date = models.DateField(null=True, blank=True)
    start_time = models.TimeField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=BookingStatus.choices, default=BookingStatus.PENDING)
    payment_status = models.CharField(max_length=12, choices=PaymentStatus.choices, default=PaymentStatus.NONE)
    payment_amount_cents = models.PositiveIntegerField(null=True, blank=True)
    currency = models.CharField(max_length=10, default=_default_currency)
    payment_intent_reference = models.CharField(max_length=200, blank=True, null=True)
    payment_paid_at = models.DateTimeField(null=True, blank=True)

    needs_review = models.BooleanField(default=False)
    review_reason = models.CharField(max_length=300, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "id"]
        indexes = [
            models.Index(fields=["payment_intent_reference"], name="booking_payment_ref_idx"),
        ]

    def __str__(self):
        return f"Booking #{self.pk} at {self.restaurant_id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
