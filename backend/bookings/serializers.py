from rest_framework import serializers

from bookings.models import Booking


class GuestBookingSerializer(serializers.ModelSerializer):
    restaurant_name = serializers.CharField(source="restaurant.name", read_only=True)
    invoice_numbers = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "restaurant_name",
            "customer_name",
            "guest_count",
            "booking_date",
            "start_time",
            "status",
            "payment_status",
            "payment_amount_cents",
            "currency",
            "payment_paid_at",
            "invoice_numbers",
        ]
        read_only_fields = fields

    def get_invoice_numbers(self, obj) -> list[str]:
        return list(obj.invoices.order_by("paid_at").values_list("invoice_number", flat=True))


class PaymentIntentSerializer(serializers.Serializer):
    payment_intent = serializers.CharField()
    client_secret = serializers.CharField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
