from django.db import migrations, models
import django.db.models.deletion

import bookings.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("orgs", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("guest_count", models.PositiveIntegerField(default=2)),
                ("booking_date", models.DateField(blank=True, null=True)),
                ("start_time", models.TimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("waiting_payment", "Waiting for payment"), ("confirmed", "Confirmed"), ("cancelled", "Cancelled"), ("completed", "Completed")], default="pending", max_length=20)),
                ("payment_status", models.CharField(choices=[("none", "None"), ("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed"), ("refunded", "Refunded")], default="none", max_length=12)),
                ("payment_amount_cents", models.PositiveIntegerField(blank=True, null=True)),
                ("currency", models.CharField(default=bookings.models._default_currency, max_length=10)),
                ("payment_intent_reference", models.CharField(blank=True, max_length=200, null=True)),
                ("payment_paid_at", models.DateTimeField(blank=True, null=True)),
                ("needs_review", models.BooleanField(default=False)),
                ("review_reason", models.CharField(blank=True, max_length=300)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bookings", to="orgs.restaurant")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bookings", to="orgs.tenant")),
            ],
            options={
                "ordering": ["-created_at", "id"],
                "indexes": [models.Index(fields=["payment_intent_reference"], name="booking_payment_ref_idx")],
            },
        ),
    ]
