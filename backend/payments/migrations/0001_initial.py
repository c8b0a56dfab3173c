from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        ("orgs", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(blank=True, max_length=100)),
                ("payment_intent_reference", models.CharField(blank=True, db_index=True, max_length=200)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("outcome", models.CharField(choices=[("admitted", "Admitted"), ("transitioned", "Transitioned"), ("ignored", "Ignored"), ("rejected", "Rejected"), ("review", "Needs review")], default="admitted", max_length=20)),
                ("detail", models.CharField(blank=True, max_length=500)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-received_at"],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=80, unique=True)),
                ("payment_intent_reference", models.CharField(max_length=200)),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(max_length=10)),
                ("status", models.CharField(choices=[("paid", "Paid"), ("refunded", "Refunded")], default="paid", max_length=12)),
                ("paid_at", models.DateTimeField()),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("receipt_url", models.URLField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="bookings.booking")),
                ("restaurant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="orgs.restaurant")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="orgs.tenant")),
            ],
            options={
                "ordering": ["-paid_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("booking", "payment_intent_reference"), name="unique_invoice_per_booking_payment"),
                ],
            },
        ),
    ]
