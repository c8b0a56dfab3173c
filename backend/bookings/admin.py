from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "restaurant",
        "customer_email",
        "status",
        "payment_status",
        "payment_intent_reference",
        "needs_review",
    )
    list_filter = ("status", "payment_status", "needs_review", "tenant")
    search_fields = ("customer_email", "customer_name", "payment_intent_reference")
    readonly_fields = ("payment_intent_reference", "payment_paid_at", "created_at", "updated_at")
