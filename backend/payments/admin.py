from django.contrib import admin

from .models import Invoice, PaymentEvent


@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "payment_intent_reference", "outcome", "received_at", "processed_at")
    list_filter = ("outcome", "event_type")
    search_fields = ("event_id", "payment_intent_reference")
    readonly_fields = (
        "event_id",
        "event_type",
        "payment_intent_reference",
        "payload",
        "outcome",
        "detail",
        "received_at",
        "processed_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "booking", "amount_cents", "currency", "status", "paid_at")
    list_filter = ("status", "currency")
    search_fields = ("invoice_number", "payment_intent_reference", "booking__customer_email")
    readonly_fields = ("invoice_number", "payment_intent_reference", "created_at")
